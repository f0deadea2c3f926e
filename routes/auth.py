from core.imports import Blueprint, jsonify, request, jwt_required, current_app, secrets, random, re, datetime, timedelta, Message, SQLAlchemyError
from core.extensions import db, bcrypt, mail
from core.auth import current_identity, issue_token
from core.errors import ValidationError, AuthError, NotFoundError, UpstreamError
from models.userModel import User, PhoneOTP, PasswordResetToken
from services.notifications import send_otp_sms, ChannelUnavailable

auth_bp = Blueprint('auth', __name__)

OTP_TTL = timedelta(minutes=10)
RESET_TOKEN_TTL = timedelta(hours=1)
MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(phone_number):
    """Return an Indian mobile number as +91XXXXXXXXXX, or None when it is not one."""
    digits = re.sub(r"\D", "", phone_number or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) != 10 or digits[0] not in "6789":
        return None
    return f"+91{digits}"


def generate_otp():
    return str(random.SystemRandom().randint(100000, 999999))


def send_email(to, subject, body):
    msg = Message(subject=subject, recipients=[to])
    msg.html = body
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.warning("Error sending email to %s: %s", to, e)


def _commit(message):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise UpstreamError(message) from e


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    Register a customer account
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password, firstName, lastName]
          properties:
            email: { type: string, example: "anita@example.com" }
            password: { type: string, example: "secret123" }
            firstName: { type: string, example: "Anita" }
            lastName: { type: string, example: "Oraon" }
            phone: { type: string, example: "9876543210" }
    responses:
      201:
        description: Account created, token returned
      400:
        description: Missing fields or email already registered
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or "").strip().lower()
    password = data.get('password') or ""
    first_name = (data.get('firstName') or "").strip()
    last_name = (data.get('lastName') or "").strip()
    phone = data.get('phone')

    if not all([email, password, first_name, last_name]):
        raise ValidationError("email, password, firstName and lastName are required")
    if not EMAIL_RE.match(email):
        raise ValidationError("email is not valid")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    if phone:
        phone = normalize_phone(phone)
        if not phone:
            raise ValidationError("phone is not a valid mobile number")
        if User.query.filter_by(phone=phone).first():
            raise ValidationError("An account with this phone number already exists")

    if User.query.filter_by(email=email).first():
        raise ValidationError("User already exists with this email")

    user = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role="USER"
    )
    db.session.add(user)
    _commit("Failed to create account")
    current_app.logger.info("Registered user %s", user.id)

    return jsonify({
        "success": True,
        "message": "Registration successful",
        "data": {"token": issue_token(user), "user": user.to_dict()}
    }), 201


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    """
    Log in with email and password
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password]
          properties:
            email: { type: string, example: "anita@example.com" }
            password: { type: string, example: "secret123" }
    responses:
      200:
        description: Token and user
      400:
        description: Missing fields
      401:
        description: Invalid credentials
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or "").strip().lower()
    password = data.get('password') or ""

    if not email or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter_by(email=email).first()
    if not user or not bcrypt.check_password_hash(user.password, password):
        raise AuthError("Invalid credentials")

    return jsonify({
        "success": True,
        "message": "Login successful",
        "data": {"token": issue_token(user), "user": user.to_dict()}
    }), 200


@auth_bp.route('/api/auth/me', methods=['GET'])
@jwt_required()
def me():
    """
    Current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: The authenticated user
      401:
        description: Authentication required
    """
    user = db.session.get(User, current_identity().user_id)
    if not user:
        raise NotFoundError("User not found")
    return jsonify({"success": True, "data": user.to_dict()}), 200


@auth_bp.route('/api/auth/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    """
    Update name or phone of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            firstName: { type: string }
            lastName: { type: string }
            phone: { type: string }
    responses:
      200:
        description: Updated user
    """
    user = db.session.get(User, current_identity().user_id)
    if not user:
        raise NotFoundError("User not found")

    data = request.get_json(silent=True) or {}
    for field, attr in (("firstName", "first_name"), ("lastName", "last_name")):
        if field in data:
            value = (data.get(field) or "").strip()
            if not value:
                raise ValidationError(f"{field} must not be empty")
            setattr(user, attr, value)

    if "phone" in data:
        phone = normalize_phone(data.get("phone"))
        if not phone:
            raise ValidationError("phone is not a valid mobile number")
        owner = User.query.filter_by(phone=phone).first()
        if owner and owner.id != user.id:
            raise ValidationError("An account with this phone number already exists")
        if phone != user.phone:
            user.phone = phone
            user.phone_verified = False

    _commit("Failed to update profile")
    return jsonify({
        "success": True,
        "message": "Profile updated",
        "data": user.to_dict()
    }), 200


@auth_bp.route('/api/auth/phone/send-otp', methods=['POST'])
def send_phone_otp():
    """
    Send a one-time code to a phone number
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [phoneNumber]
          properties:
            phoneNumber: { type: string, example: "9876543210" }
    responses:
      200:
        description: Code issued (valid for 10 minutes)
      400:
        description: Missing or invalid phone number
      500:
        description: SMS could not be sent
    """
    data = request.get_json(silent=True) or {}
    raw_phone = data.get('phoneNumber')
    if not raw_phone:
        raise ValidationError("Phone number is required")

    phone = normalize_phone(raw_phone)
    if not phone:
        raise ValidationError("Invalid phone number format")

    now = datetime.utcnow()
    PhoneOTP.query.filter(PhoneOTP.phone_number == phone, PhoneOTP.expires_at < now).delete()

    otp_code = generate_otp()
    otp = PhoneOTP(phone_number=phone, otp_code=otp_code, expires_at=now + OTP_TTL)
    db.session.add(otp)
    _commit("Failed to store OTP")

    try:
        send_otp_sms(phone, otp_code)
    except ChannelUnavailable as e:
        current_app.logger.error("OTP SMS to %s failed: %s", phone, e)
        raise UpstreamError("Failed to send SMS") from e

    body = {
        "success": True,
        "message": "Verification code sent successfully",
        "data": {"phoneNumber": phone, "expiresAt": otp.expires_at.isoformat()}
    }
    if current_app.debug or current_app.testing:
        current_app.logger.info("Development OTP for %s: %s", phone, otp_code)
        body["data"]["developmentCode"] = otp_code
    else:
        current_app.logger.info("OTP issued for %s", phone)

    return jsonify(body), 200


@auth_bp.route('/api/auth/phone/verify-otp', methods=['POST'])
def verify_phone_otp():
    """
    Verify a one-time code
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [phoneNumber, otpCode]
          properties:
            phoneNumber: { type: string, example: "9876543210" }
            otpCode: { type: string, example: "123456" }
    responses:
      200:
        description: Code verified; token included when the number belongs to an account
      400:
        description: Invalid, expired or already used code
    """
    data = request.get_json(silent=True) or {}
    raw_phone = data.get('phoneNumber')
    otp_code = str(data.get('otpCode') or "").strip()
    if not raw_phone or not otp_code:
        raise ValidationError("Phone number and OTP code are required")

    phone = normalize_phone(raw_phone)
    if not phone:
        raise ValidationError("Invalid phone number format")

    now = datetime.utcnow()
    otp = (
        PhoneOTP.query
        .filter(
            PhoneOTP.phone_number == phone,
            PhoneOTP.otp_code == otp_code,
            PhoneOTP.is_used == False,
            PhoneOTP.expires_at >= now
        )
        .order_by(PhoneOTP.created_at.desc())
        .first()
    )

    if not otp:
        latest = (
            PhoneOTP.query
            .filter_by(phone_number=phone, otp_code=otp_code)
            .order_by(PhoneOTP.created_at.desc())
            .first()
        )
        if latest and latest.is_used:
            raise ValidationError("OTP has already been used.", error="already_used")
        if latest and latest.expires_at < now:
            raise ValidationError("OTP has expired. Please request a new one.", error="expired")
        raise ValidationError("Invalid OTP code.", error="invalid_code")

    otp.is_used = True
    PhoneOTP.query.filter(PhoneOTP.phone_number == phone, PhoneOTP.id != otp.id).delete()

    result = {"phoneNumber": phone, "verifiedAt": now.isoformat()}
    user = User.query.filter_by(phone=phone).first()
    if user:
        user.phone_verified = True
        result["token"] = issue_token(user)
        result["user"] = user.to_dict()

    _commit("Failed to verify OTP")

    return jsonify({
        "success": True,
        "message": "OTP verified successfully",
        "data": result
    }), 200


@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
def forgot_password():
    """
    Request a password reset link
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email]
          properties:
            email: { type: string, example: "anita@example.com" }
    responses:
      200:
        description: Always returned, whether or not the account exists
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")

    user = User.query.filter_by(email=email).first()
    if user:
        token = secrets.token_urlsafe(32)
        db.session.add(PasswordResetToken(
            user_id=user.id,
            token=token,
            expires_at=datetime.utcnow() + RESET_TOKEN_TTL
        ))
        _commit("Failed to create reset token")

        link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
        send_email(
            user.email,
            "Reset your Tribal Fashion password",
            f"<p>Hello {user.first_name},</p>"
            f"<p>Use the link below to reset your password. It expires in one hour.</p>"
            f"<p><a href=\"{link}\">{link}</a></p>"
        )

    return jsonify({
        "success": True,
        "message": "If an account exists for this email, a reset link has been sent"
    }), 200


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
def reset_password():
    """
    Set a new password with a reset token
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [token, password]
          properties:
            token: { type: string }
            password: { type: string }
    responses:
      200:
        description: Password updated
      400:
        description: Invalid or expired token
    """
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    password = data.get('password') or ""

    if not token or not password:
        raise ValidationError("token and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    reset = PasswordResetToken.query.filter_by(token=token, used=False).first()
    if not reset or reset.expires_at < datetime.utcnow():
        raise ValidationError("Invalid or expired reset token")

    reset.user.password = bcrypt.generate_password_hash(password).decode('utf-8')
    reset.used = True
    _commit("Failed to reset password")

    return jsonify({"success": True, "message": "Password has been reset"}), 200
