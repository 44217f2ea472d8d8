from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only reads the first 72 bytes
BCRYPT_MAX_BYTES = 72


def password_fits(password: str) -> bool:
    return len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(password: str) -> str:
    if not password_fits(password):
        raise ValueError("password is longer than 72 bytes")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not password_fits(plain_password):
        return False
    return pwd_context.verify(plain_password, hashed_password)
