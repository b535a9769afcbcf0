from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional

from app.db.models.booking import PaymentMethod


# --- CREATE ---
class SelectedOptionIn(BaseModel):
    name: str
    price: Optional[float] = None  # missing counts as 0


class BookingLineRequest(BaseModel):
    service_id: int
    quantity: Optional[int] = 1
    selected_options: List[SelectedOptionIn] = Field(default_factory=list)


class Coordinates(BaseModel):
    lat: float
    lng: float


class ServiceLocationIn(BaseModel):
    type: Optional[str] = None  # client_address / provider_location / to_be_determined
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    instructions: Optional[str] = None


# services / schedule / location presence is checked in booking_service,
# in that order, each with its own message.
class BookingCreate(BaseModel):
    services: List[BookingLineRequest] = Field(default_factory=list)
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None  # "14:30"
    service_location: Optional[ServiceLocationIn] = None
    client_notes: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CASH


# --- UPDATE ---
class BookingStatusUpdate(BaseModel):
    status: Optional[str] = Field(
        default=None,
        description="Allowed values: pending, confirmed, in_progress, completed, cancelled, no_show",
    )
    note: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRate(BaseModel):
    rating: Optional[int] = Field(default=None, description="Rating 1-5")
    comment: Optional[str] = None


# --- RESPONSE ---
class ClientOut(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None


class ContactInfo(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class ProviderMini(BaseModel):
    id: int
    business_name: str
    phone_number: str
    city: Optional[str] = None
    average_rating: float


class BookingLineOut(BaseModel):
    service_id: int
    service_title: Optional[str] = None
    quantity: int
    price: float
    selected_options: List[dict]


class ServiceLocationOut(BaseModel):
    type: str
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    instructions: Optional[str] = None


class PricingOut(BaseModel):
    service_total: float
    platform_fee: float
    total_amount: float
    currency: str


class StatusHistoryOut(BaseModel):
    status: str
    changed_by: Optional[int] = None
    changed_at: datetime
    note: str


class PaymentOut(BaseModel):
    method: str
    status: str
    paid_at: Optional[datetime] = None
    transaction_id: Optional[str] = None


class RatingOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    rated_at: Optional[datetime] = None


class BookingRatings(BaseModel):
    client_rating: Optional[RatingOut] = None
    provider_rating: Optional[RatingOut] = None


class Visibility(BaseModel):
    provider_can_see_contact: bool


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    client: Optional[ClientOut] = None
    contact_info: ContactInfo
    provider: ProviderMini
    services: List[BookingLineOut]
    scheduled_date: date
    scheduled_time: str
    service_location: ServiceLocationOut
    client_notes: Optional[str] = None
    provider_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    pricing: PricingOut
    status: str
    status_history: List[StatusHistoryOut]
    payment: PaymentOut
    visibility: Visibility
    rating: BookingRatings
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        coordinates = None
        if booking.location_lat is not None and booking.location_lng is not None:
            coordinates = Coordinates(lat=booking.location_lat, lng=booking.location_lng)

        client_rating = None
        if booking.client_rating is not None:
            client_rating = RatingOut(
                rating=booking.client_rating,
                comment=booking.client_rating_comment,
                rated_at=booking.client_rated_at,
            )
        provider_rating = None
        if booking.provider_rating is not None:
            provider_rating = RatingOut(
                rating=booking.provider_rating,
                comment=booking.provider_rating_comment,
                rated_at=booking.provider_rated_at,
            )

        client = booking.client
        provider = booking.provider
        return cls(
            id=booking.id,
            booking_number=booking.booking_number,
            client=ClientOut(id=client.id, name=client.name, email=client.email, phone=client.phone) if client else None,
            contact_info=ContactInfo(
                name=booking.contact_name,
                phone=booking.contact_phone,
                email=booking.contact_email,
            ),
            provider=ProviderMini(
                id=provider.id,
                business_name=provider.business_name,
                phone_number=provider.phone_number,
                city=provider.city,
                average_rating=provider.average_rating or 0,
            ),
            services=[
                BookingLineOut(
                    service_id=line.service_id,
                    service_title=line.service.title if line.service else None,
                    quantity=line.quantity,
                    price=line.price,
                    selected_options=list(line.selected_options or []),
                )
                for line in booking.lines
            ],
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            service_location=ServiceLocationOut(
                type=booking.location_type,
                address=booking.location_address,
                city=booking.location_city,
                district=booking.location_district,
                coordinates=coordinates,
                instructions=booking.location_instructions,
            ),
            client_notes=booking.client_notes,
            provider_notes=booking.provider_notes,
            admin_notes=booking.admin_notes,
            pricing=PricingOut(
                service_total=booking.service_total,
                platform_fee=booking.platform_fee,
                total_amount=booking.total_amount,
                currency=booking.currency,
            ),
            status=booking.status,
            status_history=[
                StatusHistoryOut(
                    status=h.status,
                    changed_by=h.changed_by_id,
                    changed_at=h.changed_at,
                    note=h.note or "",
                )
                for h in booking.status_history
            ],
            payment=PaymentOut(
                method=booking.payment_method,
                status=booking.payment_status,
                paid_at=booking.paid_at,
                transaction_id=booking.transaction_id,
            ),
            visibility=Visibility(provider_can_see_contact=bool(booking.provider_can_see_contact)),
            rating=BookingRatings(client_rating=client_rating, provider_rating=provider_rating),
            created_at=booking.created_at,
            confirmed_at=booking.confirmed_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
        )
