import re

from marshmallow import Schema, fields, pre_load, validate, validates, ValidationError

USERNAME_RE = r"^[a-zA-Z0-9_]{3,50}$"
PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*#?&]{8,}$")


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _check_password(value):
    if len(value) < 8 or len(value) > 128:
        raise ValidationError("Password must be between 8 and 128 characters.")
    if not PASSWORD_RE.match(value):
        raise ValidationError(
            "Password must contain at least one letter and one digit "
            "and only letters, digits and @$!%*#?&."
        )


class EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class RegisterSchema(EmailNormalizingSchema):
    username = fields.String(
        required=True,
        validate=validate.Regexp(USERNAME_RE, error="Username must be 3-50 letters, digits or underscores."),
    )
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class LoginSchema(Schema):
    username = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1, error="Refresh token cannot be blank."))


class EmailSchema(EmailNormalizingSchema):
    email = fields.Email(required=True, validate=validate.Length(max=255))


class VerifyEmailSchema(EmailNormalizingSchema):
    email = fields.Email(required=True, validate=validate.Length(max=255))
    token = fields.String(required=True, validate=validate.Length(min=1, max=255))


class ResetPasswordSchema(EmailNormalizingSchema):
    email = fields.Email(required=True, validate=validate.Length(max=255))
    token = fields.String(required=True, validate=validate.Length(min=1, max=255))
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password(value)


class ProfileUpdateSchema(EmailNormalizingSchema):
    username = fields.String(
        allow_none=True,
        validate=validate.Regexp(USERNAME_RE, error="Username must be 3-50 letters, digits or underscores."),
    )
    email = fields.Email(allow_none=True, validate=validate.Length(max=255))
    full_name = fields.String(allow_none=True, validate=validate.Length(max=100))
    bio = fields.String(allow_none=True, validate=validate.Length(max=500))
    image_url = fields.String(allow_none=True, validate=validate.Length(max=500))


class ProfileOutSchema(Schema):
    username = fields.String()
    email = fields.String()
    full_name = fields.String(allow_none=True)
    bio = fields.String(allow_none=True)
    image_url = fields.String(allow_none=True)
    roles = fields.List(fields.String())
    enabled = fields.Boolean()
    email_verified = fields.Boolean()


class AddRoleSchema(Schema):
    role = fields.String(required=True, validate=validate.Length(min=1, max=50))
