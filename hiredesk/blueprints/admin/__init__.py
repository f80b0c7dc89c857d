from flask import Blueprint

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

# Import route modules to register their endpoints
from . import assignments    # noqa: E402,F401
from . import pricing        # noqa: E402,F401
from . import credits        # noqa: E402,F401
