# Access Control Database Models
# Import all models here for SQLAlchemy discovery

from app.models.employee import Employee, EmployeeVehicle   # noqa
from app.models.visitor import Visitor                      # noqa
from app.models.access_event import AccessEvent             # noqa
