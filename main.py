#!/usr/bin/env python3
"""
Google sign-in service.
Serves the sign-in UI and the authorization-code exchange endpoint.
"""

import argparse
import json
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep gsignin imports lazy (inside functions) so `--help` works without the server stack.
#


def print_authorize_url(redirect_uri: str | None) -> None:
    """Print a fresh Google authorization URL together with its state token."""
    from gsignin.auth.config import load_auth_config
    from gsignin.auth.google import build_authorize_url
    from gsignin.auth.util import random_token

    cfg = load_auth_config()
    state = random_token(32)
    url = build_authorize_url(cfg, redirect_uri=redirect_uri or cfg.callback_url(), state=state)
    print(json.dumps({"url": url, "state": state}, indent=2))


def run_exchange(code: str, redirect_uri: str) -> int:
    """
    Run the exchange pipeline once, in-process, and print the endpoint's JSON response.

    Returns the HTTP status the endpoint would answer with.
    """
    from gsignin.auth.config import load_auth_config
    from gsignin.auth.exchange import GoogleOAuthExchange
    from gsignin.auth.google import GoogleOAuthClient
    from gsignin.errors import SignInError
    from gsignin.identity.gotrue import GoTrueAdminClient

    cfg = load_auth_config()
    google = GoogleOAuthClient(cfg)
    with GoTrueAdminClient(cfg.supabase_url, cfg.supabase_service_role_key, timeout=cfg.http_timeout_seconds) as backend:
        try:
            result = GoogleOAuthExchange(google, backend).run(code=code, redirect_uri=redirect_uri)
        except SignInError as e:
            print(json.dumps({"error": e.message}, indent=2))
            return e.status_code
        finally:
            google.close()
    print(json.dumps(result.model_dump(), indent=2, sort_keys=False))
    return 200


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sign in with Google against Supabase Auth",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the UI and the exchange endpoint
  python main.py --serve

  # Print an authorization URL to open in a browser
  python main.py --authorize-url

  # Exchange a code by hand (prints the endpoint's JSON response)
  python main.py --exchange CODE --redirect-uri http://localhost:8000/auth/callback
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server (UI + exchange endpoint)")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Server listen port (default: 8000)")
    parser.add_argument("--authorize-url", action="store_true", help="Print a Google authorization URL and its state")
    parser.add_argument("--exchange", metavar="CODE", help="Exchange an authorization code and print the result")
    parser.add_argument(
        "--redirect-uri",
        help="Redirect URI used to obtain the code (default: AUTH_PUBLIC_BASE_URL + /auth/callback)",
    )

    args = parser.parse_args()

    try:
        if args.serve:
            from gsignin.api.web import run as run_server

            run_server(host=args.host, port=args.port)
            return

        if args.authorize_url:
            print_authorize_url(args.redirect_uri)
            return

        if args.exchange:
            from gsignin.auth.config import load_auth_config

            redirect_uri = args.redirect_uri or load_auth_config().callback_url()
            status = run_exchange(args.exchange, redirect_uri)
            sys.exit(0 if status == 200 else 1)

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
