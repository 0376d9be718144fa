from app.schemas.auth import Token, UserCreate, UserLogin, UserResponse
from app.schemas.property import PropertyCreate, PropertyUpdate, PropertyResponse, PropertyComplianceResponse
from app.schemas.jurisdiction import JurisdictionResponse, JurisdictionSummary, MATScheduleResponse
from app.schemas.notification import NotificationResponse, NotificationUpdate
from app.schemas.billing import CheckoutRequest, SubscriptionResponse
