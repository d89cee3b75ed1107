from mangum import Mangum

from api.app import create_app

# Fails at import with ConfigurationError when the provider settings are absent.
app = create_app()

handler = Mangum(app)
