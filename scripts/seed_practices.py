from practicedesk.core.config import settings
from practicedesk.core.firebase import get_db

practices = [
    {"id": "p1", "name": "Main Street Practice"},
    {"id": "p2", "name": "Harbour Clinic"},
]


def seed(db, rows=practices):
    collection = db.collection(settings.PRACTICE_COLLECTION)
    added = []
    for p in rows:
        # Check if exists to avoid overwriting renamed practices
        ref = collection.document(p['id'])
        if not ref.get().exists:
            ref.set({"name": p['name']})
            added.append(p['id'])
            print(f"Added {p['id']} ({p['name']})")
        else:
            print(f"Skipped {p['id']} (Exists)")
    return added


if __name__ == "__main__":
    # Credentials come from FIREBASE_CREDENTIALS
    seed(get_db())
