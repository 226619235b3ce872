#!/usr/bin/env python3
"""
Generate secure secrets for the Pick'em service
Run this script to generate SECRET_KEY and WTF_CSRF_SECRET_KEY for your .env
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    return {
        "SECRET_KEY": secrets.token_urlsafe(32),
        "WTF_CSRF_SECRET_KEY": secrets.token_urlsafe(32),
    }


if __name__ == "__main__":
    print("🔐 Generating secure secrets for Pick'em...")
    print("=" * 50)

    for name, value in generate_secrets().items():
        print(f"{name}={value}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Keep these secrets secure and never commit them to version control!")
