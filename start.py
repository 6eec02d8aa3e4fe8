#!/usr/bin/env python3
"""
Development server runner for HealthMonitor
Runs the API in development mode with debug and reload enabled, plus the
reminder poller in a side process
"""
import os
import sys
import subprocess
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent


def in_virtual_environment():
    """Check if running in virtual environment"""
    return hasattr(sys, 'real_prefix') or (
        hasattr(sys, 'base_prefix') and sys.base_prefix != sys.prefix
    )


def install_package():
    """Install the project (editable) with its dependencies"""
    if not in_virtual_environment():
        print("⚠️  Not running in a virtual environment, skipping install")
        return

    print("📦 Checking dependencies...")
    try:
        subprocess.check_call([
            sys.executable, '-m', 'pip', 'install', '-q', '-e', str(BASE_DIR)
        ])
        print("✓ All dependencies installed")
    except subprocess.CalledProcessError as e:
        print(f"❌ Failed to install dependencies: {e}")
        sys.exit(1)


def load_environment():
    """Load environment variables"""
    env_file = BASE_DIR / '.env'

    if env_file.exists():
        load_dotenv(env_file)
        print("✓ Environment variables loaded from .env")
    else:
        print("ℹ️  No .env file found (using defaults)")

    if not os.environ.get('GOOGLE_MAPS_API_KEY'):
        print("⚠️  GOOGLE_MAPS_API_KEY not set, hospital search will be unavailable")

    # Set defaults for development
    if not os.environ.get('FLASK_APP'):
        os.environ['FLASK_APP'] = 'healthmonitor:create_app()'


def initialize_app():
    """Initialize Flask application with Flask-Migrate"""
    print("\n📦 Initializing application...")

    # SQLite database lives in instance/
    (BASE_DIR / 'instance').mkdir(exist_ok=True)
    print("✓ Instance directory ready")

    from healthmonitor import create_app

    app = create_app()
    print("✓ Application initialized, reminder schedules reconciled")

    return app


def start_reminder_poller():
    """Run `flask reminders run` next to the dev server; returns the process or None"""
    if os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        # Reloader child: the parent already started the poller
        return None
    if os.environ.get('DISABLE_REMINDER_POLLER', '').lower() in ('1', 'true', 'yes'):
        print("ℹ️  Reminder poller disabled")
        return None

    process = subprocess.Popen([sys.executable, '-m', 'flask', 'reminders', 'run'], cwd=str(BASE_DIR))
    print(f"✓ Reminder poller started (pid {process.pid})")
    return process


def run_development_server(app):
    """Run Flask development server with debug and reload"""
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '0.0.0.0')

    print("\n" + "="*60)
    print("🚀 Starting HealthMonitor Development Server")
    print("="*60)
    print(f"Timezone: {app.config['APP_TIMEZONE']}")
    print(f"Reminder poll interval: {app.config['REMINDER_POLL_SECONDS']}s")
    print(f"Host: {host}")
    print(f"Port: {port}")
    print(f"Access URL: http://localhost:{port}")
    print("="*60 + "\n")

    app.run(
        host=host,
        port=port,
        debug=True,
        use_reloader=True
    )


def main():
    """Main entry point"""
    print("\n🔧 HealthMonitor Development Setup\n")

    poller = None
    try:
        install_package()
        load_environment()
        app = initialize_app()
        poller = start_reminder_poller()
        run_development_server(app)
    except KeyboardInterrupt:
        print("\n\n👋 Server stopped by user")
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        if poller is not None:
            poller.terminate()


if __name__ == '__main__':
    main()
