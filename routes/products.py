from core.imports import Blueprint, jsonify, request, Decimal, InvalidOperation, SQLAlchemyError
from core.extensions import db
from core.auth import admin_required
from core.errors import ValidationError, NotFoundError, UpstreamError
from core.pagination import parse_page_args, pagination_meta
from models.productModels import Product

products_bp = Blueprint('products', __name__)

FEATURED_LIMIT = 10


@products_bp.route('/api/products', methods=['GET'])
def get_products():
    """
    List products
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
      - name: featured
        in: query
        type: string
        enum: ["true", "false"]
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
    responses:
      200:
        description: Paginated products
    """
    page, limit = parse_page_args(request.args)

    query = Product.query
    category = request.args.get("category")
    if category:
        query = query.filter_by(category=category)
    featured = request.args.get("featured")
    if featured:
        query = query.filter_by(featured=featured.lower() == "true")

    pagination = query.order_by(Product.created_at.desc(), Product.id).paginate(
        page=page, per_page=limit, error_out=False
    )

    return jsonify({
        "success": True,
        "data": [product.to_dict() for product in pagination.items],
        "pagination": pagination_meta(pagination)
    }), 200


@products_bp.route('/api/products/featured', methods=['GET'])
def get_featured_products():
    """
    Featured products for the home page carousel
    ---
    tags:
      - Products
    responses:
      200:
        description: Up to 10 featured products
    """
    products = (
        Product.query
        .filter_by(featured=True)
        .order_by(Product.created_at.desc())
        .limit(FEATURED_LIMIT)
        .all()
    )
    return jsonify({"success": True, "data": [p.to_dict() for p in products]}), 200


@products_bp.route('/api/products/<string:product_id>', methods=['GET'])
def get_product(product_id):
    """
    Get a single product
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Product
      404:
        description: Product not found
    """
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return jsonify({"success": True, "data": product.to_dict()}), 200


@products_bp.route('/api/products', methods=['POST'])
@admin_required
def create_product():
    """
    Admin: add a product to the catalog
    ---
    tags:
      - Products
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, price]
          properties:
            name: { type: string, example: "Santhali Handloom Saree" }
            description: { type: string }
            price: { type: number, example: 2500.00 }
            image: { type: string }
            category: { type: string, example: "sarees" }
            featured: { type: boolean }
            inventory: { type: integer, example: 20 }
    responses:
      201:
        description: Product created
      400:
        description: Invalid product data
      403:
        description: Admin access required
    """
    data = request.get_json(silent=True) or {}

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    try:
        price = Decimal(str(data.get("price"))).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError("price must be a valid amount")
    if not price.is_finite() or price <= 0:
        raise ValidationError("price must be greater than 0")

    inventory = data.get("inventory", 0)
    if isinstance(inventory, bool) or not isinstance(inventory, int) or inventory < 0:
        raise ValidationError("inventory must be a non-negative integer")

    product = Product(
        name=name,
        description=data.get("description") or "",
        price=price,
        image=data.get("image"),
        category=data.get("category"),
        featured=bool(data.get("featured", False)),
        inventory=inventory
    )
    db.session.add(product)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise UpstreamError("Failed to create product") from e

    return jsonify({"success": True, "data": product.to_dict()}), 201
