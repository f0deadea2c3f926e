from core.imports import Blueprint, jwt_required, jsonify, request, current_app
from core.auth import current_identity, admin_required
from core.errors import ValidationError
from core.pagination import parse_page_args, pagination_meta
from services import orders as order_service
from services.notifications import dispatch_order_notification

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('/api/orders', methods=['POST'])
@jwt_required()
def create_order():
    """
    Place a cash on delivery order
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - items
            - total
            - shippingAddress
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  productId:
                    type: string
                    example: "p1"
                  quantity:
                    type: integer
                    example: 2
                  price:
                    type: number
                    example: 2500.00
            total:
              type: number
              example: 5000.00
            shippingAddress:
              type: object
              properties:
                name: { type: string, example: "Anita Oraon" }
                phone: { type: string, example: "9876543210" }
                address: { type: string, example: "12 Main Road" }
                city: { type: string, example: "Ranchi" }
                state: { type: string, example: "Jharkhand" }
                zipCode: { type: string, example: "834001" }
                country: { type: string, example: "India" }
            paymentMethod:
              type: string
              enum: [COD]
              example: COD
    responses:
      201:
        description: Order created
      400:
        description: Validation error naming the offending field
      401:
        description: Authentication required
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}

    order_request = order_service.parse_order_request(data)
    if order_request["payment_method"] != "COD":
        raise ValidationError("paymentMethod ONLINE must be completed through payment verification")

    order = order_service.create_order(identity, order_request)
    body = order.to_dict()

    dispatch_order_notification(order)

    return jsonify({
        "success": True,
        "message": "Order created successfully",
        "data": body
    }), 201


@orders_bp.route('/api/orders', methods=['GET'])
@jwt_required()
def get_orders():
    """
    List the caller's orders
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [PENDING, PROCESSING, SHIPPED, DELIVERED, CANCELLED]
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
        description: Paginated orders of the caller, newest first
      400:
        description: Invalid status or pagination parameters
    """
    identity = current_identity()
    page, limit = parse_page_args(request.args)

    pagination = order_service.list_orders(
        identity,
        status=request.args.get("status"),
        page=page,
        limit=limit
    )

    return jsonify({
        "success": True,
        "data": [order.to_dict() for order in pagination.items],
        "pagination": pagination_meta(pagination)
    }), 200


@orders_bp.route('/api/orders/<string:order_id>', methods=['GET'])
@jwt_required()
def get_order(order_id):
    """
    Get one of the caller's orders
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Order with items
      404:
        description: Order not found
    """
    order = order_service.get_order(current_identity(), order_id)
    return jsonify({"success": True, "data": order.to_dict()}), 200


@orders_bp.route('/api/orders/<string:order_id>/status', methods=['PATCH'])
@admin_required
def update_order_status(order_id):
    """
    Admin: set the status of an order
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [PENDING, PROCESSING, SHIPPED, DELIVERED, CANCELLED]
              example: SHIPPED
    responses:
      200:
        description: Updated order
      400:
        description: Invalid status
      403:
        description: Admin access required
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    order = order_service.update_order_status(order_id, data.get("status"))
    current_app.logger.info("Admin %s set order %s to %s", current_identity().user_id, order.id, order.status)

    return jsonify({
        "success": True,
        "message": f"Order status updated to {order.status}",
        "data": order.to_dict()
    }), 200
