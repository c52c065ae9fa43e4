"""Local development entry point for the Memora API.

Usage:
    flask --app run run          # preferred
    flask --app run send-reminders --dry-run

Loads .env first so config.py sees SUPABASE_*, STRIPE_* and friends.
"""

import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from memora import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=int(os.environ.get("PORT", 5001)))
