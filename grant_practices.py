import argparse

from firebase_admin import auth, firestore

from practicedesk.core.config import settings
from practicedesk.core.firebase import get_db


def grant(db, uid, practice_ids):
    db.collection(settings.USER_COLLECTION).document(uid).set(
        {"allowedPractices": firestore.ArrayUnion(practice_ids)},
        merge=True,
    )


def main():
    parser = argparse.ArgumentParser(description="Grant a user access to practices.")
    parser.add_argument("uid")
    parser.add_argument("practice_ids", nargs="+")
    parser.add_argument("--role", help="optional custom claim, e.g. admin or staff")
    args = parser.parse_args()

    # Credentials come from FIREBASE_CREDENTIALS
    grant(get_db(), args.uid, args.practice_ids)
    print(f"✅ allowedPractices updated for UID: {args.uid} -> {args.practice_ids}")

    if args.role:
        auth.set_custom_user_claims(args.uid, {"role": args.role})
        print(f"✅ Role claim '{args.role}' set. Refresh the token with getIdToken(true)")


if __name__ == "__main__":
    main()
