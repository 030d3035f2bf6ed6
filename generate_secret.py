import secrets


def generate_secret_key(length: int = 32):
    """Generate a random bearer secret for the cache sweep endpoint."""
    return secrets.token_hex(length)


if __name__ == "__main__":
    key = generate_secret_key()
    print(f"Generated CRON_SECRET: {key}")
    print("\nCopy this to your .env file and to the cron job's Authorization header:")
    print(f"CRON_SECRET={key}")
