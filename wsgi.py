"""
WSGI entry point for production deployment
Run with: gunicorn -w 4 -b 0.0.0.0:5000 wsgi:app
"""
from app import create_app

# Create Flask app instance
application = app = create_app()

if __name__ == '__main__':
    # For development only
    application.run(debug=True)
