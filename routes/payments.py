from core.imports import Blueprint, jwt_required, jsonify, request, current_app, json
from core.auth import current_identity
from core.errors import ValidationError, PaymentVerificationError
from services import orders as order_service
from services import payments as payment_service
from services.notifications import dispatch_order_notification

payments_bp = Blueprint('payments', __name__)


def _first(data, *keys):
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


@payments_bp.route('/api/payments/create-order', methods=['POST'])
@jwt_required()
def create_payment_order():
    """
    Open a Razorpay order for an online checkout
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - amount
            - orderData
          properties:
            amount:
              type: number
              description: Order total in rupees
              example: 5000.00
            currency:
              type: string
              example: INR
            orderData:
              type: object
              description: The order body that will be placed once payment is verified
    responses:
      200:
        description: Gateway order descriptor
      400:
        description: Invalid amount or order data
      500:
        description: Payment gateway failure
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}

    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        raise ValidationError("Valid amount is required")

    order_data = data.get("orderData")
    if not order_data:
        raise ValidationError("Order data is required")

    order_request = order_service.parse_order_request(order_data)
    if payment_service.to_minor_units(amount) != payment_service.to_minor_units(order_request["total"]):
        raise ValidationError("amount does not match the order total")

    currency = data.get("currency") or current_app.config["DEFAULT_CURRENCY"]
    gateway_order = payment_service.create_gateway_order(
        order_request["total"],
        currency,
        notes={"userId": identity.user_id, "orderData": json.dumps(order_data)}
    )

    return jsonify({
        "success": True,
        "message": "Payment order created successfully",
        "data": {
            "order": gateway_order,
            "keyId": current_app.config["RAZORPAY_KEY_ID"]
        }
    }), 200


@payments_bp.route('/api/payments/verify', methods=['POST'])
@jwt_required()
def verify_payment():
    """
    Verify a Razorpay checkout callback and place the order
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - gatewayOrderId
            - gatewayPaymentId
            - signature
            - orderData
          properties:
            gatewayOrderId:
              type: string
              example: order_NfX1a2b3c4
            gatewayPaymentId:
              type: string
              example: pay_NfX9z8y7x6
            signature:
              type: string
              description: Hex HMAC-SHA256 of "gatewayOrderId|gatewayPaymentId"
            orderData:
              type: object
    responses:
      200:
        description: Payment verified and order created
      400:
        description: Missing data, signature mismatch, or order not matching the paid gateway order
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}

    gateway_order_id = _first(data, "gatewayOrderId", "razorpay_order_id")
    gateway_payment_id = _first(data, "gatewayPaymentId", "razorpay_payment_id")
    signature = _first(data, "signature", "razorpay_signature")
    if not gateway_order_id or not gateway_payment_id or not signature:
        raise ValidationError("Payment verification data is required")

    order_data = data.get("orderData")
    if not order_data:
        raise ValidationError("Order data is required")

    payment_service.verify_signature(gateway_order_id, gateway_payment_id, signature)
    current_app.logger.info("Payment %s verified for gateway order %s", gateway_payment_id, gateway_order_id)

    order = order_service.find_order_by_payment(gateway_payment_id)
    if order is None:
        order_request = order_service.parse_order_request(order_data)
        gateway_order = payment_service.fetch_gateway_order(gateway_order_id)
        payment_service.check_gateway_order(gateway_order, order_request["total"], identity.user_id)

        try:
            order = order_service.create_order(identity, order_request, payment={
                "payment_id": gateway_payment_id,
                "payment_order_id": gateway_order_id,
            })
        except order_service.DuplicatePaymentError:
            # a concurrent verify stored it first
            order = order_service.find_order_by_payment(gateway_payment_id)
        else:
            dispatch_order_notification(order)

    if order.user_id != identity.user_id or order.payment_order_id != gateway_order_id:
        raise PaymentVerificationError("Payment verification failed")

    return jsonify({
        "success": True,
        "message": "Payment verified and order created successfully",
        "data": {
            "order": order.to_dict(),
            "payment": {
                "id": gateway_payment_id,
                "orderId": gateway_order_id,
                "status": "captured"
            }
        }
    }), 200
