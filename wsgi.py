"""
F08 - WSGI entry point for the DKIM/DMARC publication checker.

WSGI hosts import this module and look for the ``app`` variable.  The
development server can also be started by running this file directly.

=============================================================================
DEPLOYMENT
=============================================================================

1. INSTALL
     pip install -e .

2. ENVIRONMENT VARIABLES (all optional)
     DNS_TIMEOUT_SECONDS=10
     DNS_TRUSTED_RESOLVER=8.8.8.8
     RATE_LIMIT_PER_HOUR=120
     RATE_LIMIT_OVERRIDES=127.0.0.1=1000,192.168.1.*=100
     QUERY_LOG_MAX_ENTRIES=500

   To also persist the query log in SQLite:
     ENABLE_QUERY_LOG_PERSISTENCE=true
     DATABASE_URL=sqlite:////absolute/path/to/mailauth.db
   and create the table once with:
     python init_db.py

   Note the four slashes for an absolute SQLite path: three for the
   protocol prefix plus one for the filesystem root.

3. OUTBOUND DNS
   The checker queries 8.8.8.8, 1.1.1.1, 208.67.222.222 and each domain's
   authoritative nameservers directly over UDP/TCP port 53.  Hosts that
   block outbound DNS will report every provider as "No record".

4. PROXIES
   Rate limiting is keyed by the first X-Forwarded-For entry.  Only deploy
   behind a proxy that overwrites that header.

=============================================================================
LOCAL DEVELOPMENT
=============================================================================

  python wsgi.py

The API will be available at http://127.0.0.1:5000/api/domain?domain=example.com

For testing:

  pip install -e ".[test]"
  pytest tests/ -v

=============================================================================
"""

from __future__ import annotations

from mailauth import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
