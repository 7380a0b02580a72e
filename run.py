"""Local development entry point.

Usage:
    python run.py

Loads .env, builds the app in FLASK_ENV (default: development) and
serves it on port 5001. Point `stripe listen --forward-to` at
http://localhost:5001/stripe/webhooks to receive test events.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from billsync import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
