"""Customer contact snapshot taken from the caller's identity.

The identity context hands over a user mapping shaped like
``{id, email, emailVerified, phoneNumber, phoneNumberVerified, firstName,
lastName, name}``. Values supplied explicitly on the order win; otherwise
only verified contact details are copied onto the order.
"""


def full_name_of(user) -> str | None:
    first_name = user.get("firstName") or user.get("first_name")
    last_name = user.get("lastName") or user.get("last_name")
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return user.get("name")


def resolve_contact(user=None, email=None, phone=None, full_name=None) -> dict:
    user = user or {}

    if not email and (user.get("emailVerified") or user.get("email_verified")):
        email = user.get("email")

    if not phone and (user.get("phoneNumberVerified") or user.get("phone_number_verified")):
        phone = user.get("phoneNumber") or user.get("phone_number")

    if not full_name:
        full_name = full_name_of(user)

    return {
        "customer_email": email or None,
        "customer_phone": phone or None,
        "customer_full_name": full_name or None,
    }


def user_id_of(user) -> str | None:
    if not user or not user.get("id"):
        return None
    return str(user["id"])
