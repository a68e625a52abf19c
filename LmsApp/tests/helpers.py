from model_bakery import baker
from rest_framework.test import APIClient

PASSWORD = "pass1234"


def make_user(role, **kwargs):
    user = baker.make("users.User", role=role, is_active=kwargs.pop("is_active", True), **kwargs)
    user.set_password(PASSWORD)
    user.save()
    return user


def login(user):
    client = APIClient()
    resp = client.post("/api/v1/auth/token/", {"email": user.email, "password": PASSWORD}, format="json")
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")
    return client
