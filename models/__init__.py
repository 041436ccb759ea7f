from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .venue import Venue, OperatingHours, VenueClosure
from .court import Court
from .session import SportSession
from .attendance import Attendance
from .waitlist import WaitlistEntry
from .booking import Booking
from .commission import CommissionTransaction
from .notification import Notification
from .favorite import Favorite
from .review import Review
from .report import Report
