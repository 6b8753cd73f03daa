from .db import db, atomic
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .coach import Coach
from .time_slot import TimeSlot
from .booking import Booking
from .payment import Payment
from .schedule import ScheduleEntry
