from mangan.api.admin.users import admin_users_bp
from mangan.api.customer.details import customer_bp
from mangan.api.dashboard.reports import reports_bp
from mangan.api.dashboard.stats import dashboard_bp
from mangan.api.deliveries.deliveries import deliveries_bp
from mangan.api.orders.orders import orders_bp
from mangan.api.packages.catalog import packages_bp
from mangan.api.payments.methods import payment_methods_bp
from mangan.routes.auth import auth_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from mangan.config import Config  # noqa: E402
from mangan.extensions import db  # noqa: E402


def create_app(test_config=None):
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        if test_config:
            app.config.update(test_config)

        CORS(app)
        db.init_app(app)

        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host
        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)

        blueprints = [
            auth_bp,
            customer_bp,
            admin_users_bp,
            packages_bp,
            payment_methods_bp,
            orders_bp,
            deliveries_bp,
            dashboard_bp,
            reports_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            if not app.config.get("TESTING"):
                print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "Mangan backend is running!"}, 200

    except Exception as e:
        print(f"Error during app creation: {e}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       MYSQL_PUBLIC_URL= mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/mangan
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
