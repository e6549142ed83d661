import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from recipebox.auth import SigningKey, UserService
from recipebox.errors import AuthenticationError, UserAlreadyExists


def write_pem(path, key):
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return str(path)


def test_signing_key_round_trips_claims():
    key = SigningKey()
    token = key.sign({"username": "alice", "exp": 4102444800})

    assert key.verify(token)["username"] == "alice"


def test_claims_without_expiry_are_rejected():
    key = SigningKey()
    token = key.sign({"username": "alice"})

    with pytest.raises(jwt.MissingRequiredClaimError):
        key.verify(token)


def test_key_loaded_from_pem_verifies_its_own_tokens(tmp_path):
    private_key = ec.generate_private_key(ec.SECP256R1())
    path = write_pem(tmp_path / "jwt.pem", private_key)

    first = SigningKey.from_pem_file(path)
    second = SigningKey.from_pem_file(path)

    token = first.sign({"username": "alice", "exp": 4102444800})
    assert second.verify(token)["username"] == "alice"


def test_non_ec_pem_is_rejected(tmp_path):
    path = write_pem(tmp_path / "rsa.pem", rsa.generate_private_key(public_exponent=65537, key_size=2048))

    with pytest.raises(ValueError, match="EC private key"):
        SigningKey.from_pem_file(path)


def test_register_then_check(users):
    service = UserService(users)
    service.register("carol", "pa55word")

    service.check("carol", "pa55word")
    with pytest.raises(AuthenticationError, match="incorrect user or password"):
        service.check("carol", "guess")


def test_register_duplicate(users):
    service = UserService(users)
    service.register("carol", "pa55word")

    with pytest.raises(UserAlreadyExists):
        service.register("carol", "other")
