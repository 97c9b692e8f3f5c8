import os
from dotenv import load_dotenv
load_dotenv()


def _mysql_dsn() -> str:
    return (
        f"mysql+aiomysql://{os.getenv('MYSQL_USER','root')}:{os.getenv('MYSQL_PASSWORD','123456')}"
        f"@{os.getenv('MYSQL_HOST','127.0.0.1')}:{os.getenv('MYSQL_PORT','3306')}/{os.getenv('MYSQL_DB','lotto')}?charset=utf8mb4"
    )


class Settings:
    APP_NAME = os.getenv("APP_NAME", "lotto-wallet")
    APP_ENV = os.getenv("APP_ENV", "dev")
    # APP_TZ, not TZ: the process time zone is left alone
    TZ = os.getenv("APP_TZ", "Asia/Jerusalem")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # DATABASE_URL wins over the MYSQL_* parts (tests point it at sqlite)
    DATABASE_URL = os.getenv("DATABASE_URL") or _mysql_dsn()

    PASSWORD_SALT = os.getenv("PASSWORD_SALT", "change_me")
    PASSWORD_ROUNDS = int(os.getenv("PASSWORD_ROUNDS", "29000"))

    TICKET_PRICE_ILS = int(os.getenv("TICKET_PRICE_ILS", "50"))
    DEFAULT_JACKPOT_ILS = int(os.getenv("DEFAULT_JACKPOT_ILS", "2500000"))
    # Monday=0 .. Sunday=6; default Thursday and Sunday
    DRAW_WEEKDAYS = tuple(int(d) for d in os.getenv("DRAW_WEEKDAYS", "3,6").split(",") if d.strip())
    DRAW_HOUR = int(os.getenv("DRAW_HOUR", "20"))

    MIN_DEPOSIT_ILS = int(os.getenv("MIN_DEPOSIT_ILS", "100"))
    MIN_WITHDRAWAL_ILS = int(os.getenv("MIN_WITHDRAWAL_ILS", "200"))

settings = Settings()
