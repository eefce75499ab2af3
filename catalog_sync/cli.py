# catalog_sync/cli.py
from flask.cli import FlaskGroup

from . import create_app

cli = FlaskGroup(create_app=create_app, help="Shopify catalog and inventory batch jobs.")


def main():
    cli()


if __name__ == "__main__":
    main()
