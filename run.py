from __future__ import annotations
import argparse
import os
from salonbook import create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the SalonBook API locally.")
    parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 5000)))
    parser.add_argument("--routes", action="store_true", help="Print the URL map before starting")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    flask_app = create_app()

    if args.routes:
        print("\n=== URL MAP ===")
        for rule in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
            print(f"{','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'})):<10} {rule}")
        print("===============\n")

    flask_app.logger.info(
        "Slots every %s minutes; redemption costs %s points",
        flask_app.config["SLOT_GRANULARITY_MINUTES"],
        flask_app.config["LOYALTY_REDEMPTION_COST"],
    )
    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host=args.host, port=args.port, debug=debug_enabled)

if __name__ == "__main__":
    main()
