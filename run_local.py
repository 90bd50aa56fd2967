#!/usr/bin/env python3
"""Run the site locally for development."""
import os

# Set environment variables for local development
os.environ.setdefault('DATABASE_URL', 'sqlite:///username_protection_dev.db')
os.environ.setdefault('SITE_TITLE', 'Local Development Site')
os.environ['ENVIRONMENT'] = 'development'

from app import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='127.0.0.1', port=5001)
