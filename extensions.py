from flask_login import LoginManager

from services.store import TableStore

store = TableStore()
login_manager = LoginManager()
