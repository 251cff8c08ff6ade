import os


def GetEnv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def RequireEnv(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise RuntimeError(f"Missing required env var: {name}")
    return value


def ReadIntEnv(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def EnvTruthy(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


class AuthSettings:
    @property
    def JwtSecretKey(self) -> str:
        return RequireEnv("JWT_SECRET_KEY")

    @property
    def AccessTtlMinutes(self) -> int:
        return ReadIntEnv("JWT_ACCESS_TTL_MINUTES", 30)

    @property
    def RefreshTtlDays(self) -> int:
        return ReadIntEnv("JWT_REFRESH_TTL_DAYS", 14)

    @property
    def PasswordMinLength(self) -> int:
        return ReadIntEnv("AUTH_PASSWORD_MIN_LENGTH", 8)

    @property
    def LoginMaxAttempts(self) -> int:
        return ReadIntEnv("AUTH_LOGIN_MAX_ATTEMPTS", 5)

    @property
    def LoginLockoutMinutes(self) -> int:
        return ReadIntEnv("AUTH_LOGIN_LOCKOUT_MINUTES", 15)


Settings = AuthSettings()
