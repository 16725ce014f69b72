"""Local development entry point.

Usage:
    python run.py

Loads .env, builds the app and serves it on port 5001. For the CLI
commands (flask purge-snapshots, flask recover-booking, ...) set
FLASK_APP=run.py.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from trainhub import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
