from .user import User, CompanyProfile, Role
from .candidate import Candidate
from .job import Job, JobStatus, ClosedReason
from .application import Application, ApplicationStatus
from .assignment import JobAssignment, RecruiterStatus, SpecialistStatus
from .ledger import CreditTransaction, CreditPackage, CreditPurchase, TransactionType
from .pricing import PricingEntry
from .notification import Notification
