from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os
import traceback

load_dotenv()
from safetatt.config import Config  # noqa: E402
from safetatt.extensions import db  # noqa: E402
from safetatt.routes.auth import auth_bp  # noqa: E402
from safetatt.api.appointments.appointments import appointments_bp  # noqa: E402
from safetatt.api.sessions.sessions import sessions_bp  # noqa: E402
from safetatt.api.loyalty.loyalty import loyalty_bp  # noqa: E402
from safetatt.api.clients.clients import clients_bp  # noqa: E402
from safetatt.api.marketing.marketing import marketing_bp  # noqa: E402
from safetatt.api.whatsapp.whatsapp import whatsapp_bp  # noqa: E402
from safetatt.api.studios.studios import studios_bp  # noqa: E402
from safetatt.api.team.team import team_bp  # noqa: E402
from safetatt.api.anamnesis.anamnesis import anamnesis_bp  # noqa: E402
from safetatt.api.dashboard.dashboard import dashboard_bp  # noqa: E402
from safetatt.api.admin.studios import admin_bp  # noqa: E402


def create_app():
    print("Building SafeTatt app...")
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        print(f"Config loaded ({len(app.config)} keys)")

        CORS(app)
        print("CORS enabled")

        db.init_app(app)
        print("SQLAlchemy bound")

        swagger_template = dict(SWAGGER_TEMPLATE, host=os.environ.get("API_HOST", "127.0.0.1:5000"))
        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("API docs served at /api/docs")

        blueprints = [
            auth_bp,
            appointments_bp,
            sessions_bp,
            loyalty_bp,
            clients_bp,
            marketing_bp,
            whatsapp_bp,
            studios_bp,
            team_bp,
            anamnesis_bp,
            dashboard_bp,
            admin_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ /{bp.name}")

        @app.route("/")
        def home():
            """
            Health check
            ---
            tags:
              - Utility
            responses:
              200:
                description: Service is up
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "SafeTatt API is running"}, 200

        print(f"{len(list(app.url_map.iter_rules()))} routes ready")

    except Exception as e:
        print(f"create_app() failed: {e}")
        print(traceback.format_exc())
        raise

    print("SafeTatt app ready")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/safetatt
    #       FLASK_ENV=development
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
