from core.errors import ValidationError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _positive_int(raw, name, default):
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a positive integer")
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def parse_page_args(args):
    page = _positive_int(args.get("page"), "page", 1)
    limit = _positive_int(args.get("limit"), "limit", DEFAULT_PAGE_SIZE)
    if limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must not exceed {MAX_PAGE_SIZE}")
    return page, limit


def pagination_meta(pagination):
    return {
        "page": pagination.page,
        "limit": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }
