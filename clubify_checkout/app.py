# module clubify_checkout.app
from clubify_checkout.app_setup.factory import create_app

# App globale
app = create_app()
