#!/usr/bin/env python3
"""
Reset a user's password in the local auth provider's SQLite database.

This script DOES NOT read or reveal any existing passwords.  It simply
sets a new password hash (PBKDF2-HMAC-SHA256, format "salthex$hashhex")
for the specified user email.  It only applies to ``AUTH_BACKEND=local``;
hosted accounts are managed in the Supabase dashboard.

Usage:
    python reset_password.py --db ./initiatives.db --email farmer@example.com --password "NewStrongPass!234"

If --password is omitted, you will be prompted to enter it securely.
"""

import argparse
import getpass
import os
import sqlite3
import sys
from typing import List, Optional

from agri_initiatives_api.app.core.security import hash_password


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Reset a local account password (SQLite).")
    ap.add_argument("--db", required=True, help="Path to SQLite DB file (e.g., ./initiatives.db)")
    ap.add_argument("--email", required=True, help="User email to update")
    ap.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    args = ap.parse_args(argv)

    if not os.path.exists(args.db):
        print(f"[!] DB not found: {args.db}", file=sys.stderr)
        return 1

    new_password = args.password or getpass.getpass("Enter NEW password: ")
    if not new_password:
        print("[!] Empty password is not allowed.", file=sys.stderr)
        return 1

    email = args.email.strip().lower()
    conn = sqlite3.connect(args.db)
    try:
        cur = conn.cursor()
        cur.execute("SELECT id FROM auth_users WHERE email = ?", (email,))
        if not cur.fetchone():
            print(f"[!] No user found with email: {email}", file=sys.stderr)
            return 2

        cur.execute("UPDATE auth_users SET password = ? WHERE email = ?", (hash_password(new_password), email))
        conn.commit()
        print(f"[+] Password updated for user: {email}")
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
