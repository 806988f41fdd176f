"""Coffee date service: CRUD and composition of the coffee date aggregate."""
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.exceptions import NotFoundException, ValidationException
from coffee_chronicles.models.schemas import (
    CafeInfo,
    CoffeeDate,
    CoffeeDateCreate,
    CoffeeDateUpdate,
    Ratings,
)
from coffee_chronicles.repositories import CoffeeDateRepository
from coffee_chronicles.services.photo_service import PhotoService
from coffee_chronicles.services.validation import (
    check_rating,
    check_string_length,
    format_timestamp,
    parse_date,
    require_fields,
    utc_now,
)

logger = logging.getLogger(__name__)

CAFE_NAME_MAX_LENGTH = 200
DEFAULT_SORT = "visitDate-desc"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _missing_last(value: Optional[int], descending: bool) -> Tuple[bool, int]:
    if value is None:
        return (True, 0)
    return (False, -value if descending else value)


# option -> (sort key, reverse)
SORT_OPTIONS: Dict[str, Tuple[Callable[[CoffeeDate], Any], bool]] = {
    "visitDate-desc": (lambda c: c.visit_date, True),
    "visitDate-asc": (lambda c: c.visit_date, False),
    "createdAt-desc": (lambda c: c.created_at, True),
    "createdAt-asc": (lambda c: c.created_at, False),
    "coffee-rating-desc": (lambda c: c.ratings.coffee, True),
    "coffee-rating-asc": (lambda c: c.ratings.coffee, False),
    "dessert-rating-desc": (lambda c: _missing_last(c.ratings.dessert, True), False),
    "dessert-rating-asc": (lambda c: _missing_last(c.ratings.dessert, False), False),
    "cafe-name-asc": (lambda c: c.cafe_info.name.casefold(), False),
    "cafe-name-desc": (lambda c: c.cafe_info.name.casefold(), True),
}


def check_sort_option(option: str) -> None:
    if option not in SORT_OPTIONS:
        raise ValidationException(
            f"Sort must be one of: {', '.join(SORT_OPTIONS)}",
            "sort",
        )


def sort_coffee_dates(coffee_dates: List[CoffeeDate], option: str) -> List[CoffeeDate]:
    """Order coffee dates by one of SORT_OPTIONS."""
    check_sort_option(option)
    key, reverse = SORT_OPTIONS[option]
    return sorted(coffee_dates, key=key, reverse=reverse)


def _coerce(model: Type[ModelT], data: Union[ModelT, Dict[str, Any]]) -> ModelT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise ValidationException(f"{field}: {error['msg']}", field)


def _supplied(value: Any) -> bool:
    return value is not None and value != ""


class CoffeeDateService:
    """Service for coffee date operations."""

    def __init__(self, db: AsyncSession, photo_service: PhotoService):
        """
        Initialize coffee date service.

        Args:
            db: Database session
            photo_service: Photo service used to compose and cascade
        """
        self.db = db
        self.photos = photo_service
        self.repo = CoffeeDateRepository(db)
        self.photo_repo = photo_service.repo

    # Composition

    def _compose(self, record: Dict[str, Any], photo_records: List[Dict[str, Any]]) -> CoffeeDate:
        """Convert a coffee date row and its photo rows into the aggregate."""
        photo_ids = list(record.get("photoIds") or [])
        position = {photo_id: i for i, photo_id in enumerate(photo_ids)}
        ordered = sorted(
            photo_records,
            key=lambda r: (position.get(r["id"], len(position)), r.get("uploadedAt", "")),
        )

        return CoffeeDate(
            id=record["id"],
            cafe_info=CafeInfo.model_validate(record["cafeInfo"]),
            photo_ids=photo_ids,
            photos=[self.photos.to_photo(r) for r in ordered],
            primary_photo_id=record.get("primaryPhotoId") or "",
            ratings=Ratings.model_validate(record["ratings"]),
            visit_date=parse_date(record["visitDate"], "visitDate"),
            created_at=parse_date(record["createdAt"], "createdAt"),
            updated_at=parse_date(record["updatedAt"], "updatedAt"),
        )

    # Validation

    @staticmethod
    def _validate_id(coffee_date_id: str) -> None:
        if not coffee_date_id or not str(coffee_date_id).strip():
            raise ValidationException("Coffee date ID is required", "id")

    @staticmethod
    def _validate_cafe_info(cafe_info: CafeInfo) -> None:
        if not cafe_info.name or not cafe_info.name.strip():
            raise ValidationException("Cafe name is required", "cafeInfo.name")
        check_string_length(cafe_info.name, "cafeInfo.name", 1, CAFE_NAME_MAX_LENGTH)

    @staticmethod
    def _validate_ratings(ratings: Ratings) -> None:
        check_rating(ratings.coffee, "ratings.coffee")
        if ratings.dessert is not None:
            check_rating(ratings.dessert, "ratings.dessert")

    def _validate_create(self, request: CoffeeDateCreate) -> None:
        require_fields(
            {
                "cafeInfo": request.cafe_info,
                "ratings": request.ratings,
                "visitDate": request.visit_date,
            },
            ["cafeInfo", "ratings", "visitDate"],
        )
        self._validate_cafe_info(request.cafe_info)
        self._validate_ratings(request.ratings)
        parse_date(request.visit_date, "visitDate")

    def _validate_update(self, changes: CoffeeDateUpdate) -> None:
        if not any(
            _supplied(value)
            for value in (
                changes.cafe_info,
                changes.ratings,
                changes.visit_date,
                changes.primary_photo_id,
            )
        ):
            raise ValidationException("At least one field must be provided for update")

        if changes.cafe_info is not None:
            self._validate_cafe_info(changes.cafe_info)
        if changes.ratings is not None:
            self._validate_ratings(changes.ratings)
        if _supplied(changes.visit_date):
            parse_date(changes.visit_date, "visitDate")

    # Reads

    async def list_all(self, sort: str = DEFAULT_SORT) -> List[CoffeeDate]:
        """
        Get all coffee dates with their photos.

        Rows come from the secondary index newest visit first; photos for
        every listed coffee date are fetched in one query and grouped.

        Args:
            sort: One of SORT_OPTIONS
        """
        check_sort_option(sort)

        records = await self.repo.list_by_visit_date(ascending=False)
        photos_by_owner = await self.photo_repo.group_by_coffee_date(r["id"] for r in records)
        coffee_dates = [self._compose(r, photos_by_owner.get(r["id"], [])) for r in records]

        logger.debug(f"Loaded {len(coffee_dates)} coffee dates")
        if sort == DEFAULT_SORT:
            return coffee_dates
        return sort_coffee_dates(coffee_dates, sort)

    async def get_by_id(self, coffee_date_id: str) -> Optional[CoffeeDate]:
        """
        Get a coffee date by ID.

        Returns:
            The coffee date, or None if it does not exist
        """
        self._validate_id(coffee_date_id)
        record = await self.repo.get(coffee_date_id)
        if not record:
            return None

        photo_records = await self.photo_repo.list_by_coffee_date(coffee_date_id)
        return self._compose(record, photo_records)

    # Writes

    async def create(self, request: Union[CoffeeDateCreate, Dict[str, Any]]) -> CoffeeDate:
        """
        Create a coffee date without photos.

        Photos are attached afterwards with add_photos.

        Raises:
            ValidationException: If any field is missing or invalid
        """
        request = _coerce(CoffeeDateCreate, request)
        self._validate_create(request)

        coffee_date_id = str(uuid.uuid4())
        visit_date = format_timestamp(parse_date(request.visit_date, "visitDate"))
        now = format_timestamp(utc_now())

        record = {
            **self.repo.keys_for(coffee_date_id, visit_date),
            "id": coffee_date_id,
            "cafeInfo": request.cafe_info.model_dump(by_alias=True),
            "photoIds": [],
            "primaryPhotoId": "",
            "ratings": request.ratings.model_dump(by_alias=True, exclude_none=True),
            "visitDate": visit_date,
            "createdAt": now,
            "updatedAt": now,
        }
        await self.repo.put(record)

        logger.info(f"Created coffee date {coffee_date_id} ({request.cafe_info.name})")
        return self._compose(record, [])

    async def update(
        self,
        coffee_date_id: str,
        changes: Union[CoffeeDateUpdate, Dict[str, Any]],
    ) -> CoffeeDate:
        """
        Update the supplied fields of a coffee date.

        A new visit date also moves the row in the visit-date index; both are
        written in the same row update.

        Raises:
            ValidationException: If no field is supplied or a field is invalid
            NotFoundException: If the coffee date does not exist
            ConflictException: If the row changed since it was read
        """
        self._validate_id(coffee_date_id)
        changes = _coerce(CoffeeDateUpdate, changes)
        self._validate_update(changes)

        record = await self.repo.get(coffee_date_id)
        if not record:
            raise NotFoundException("Coffee date", coffee_date_id)

        updates: Dict[str, Any] = {"updatedAt": format_timestamp(utc_now())}

        if changes.cafe_info is not None:
            updates["cafeInfo"] = changes.cafe_info.model_dump(by_alias=True)

        if changes.ratings is not None:
            updates["ratings"] = changes.ratings.model_dump(by_alias=True, exclude_none=True)

        if _supplied(changes.visit_date):
            visit_date = format_timestamp(parse_date(changes.visit_date, "visitDate"))
            updates["visitDate"] = visit_date
            updates["GSI1SK"] = visit_date

        if _supplied(changes.primary_photo_id):
            if changes.primary_photo_id not in (record.get("photoIds") or []):
                raise ValidationException(
                    "Primary photo must be one of the coffee date's photos",
                    "primaryPhotoId",
                )
            updates["primaryPhotoId"] = changes.primary_photo_id

        await self.repo.update_fields(coffee_date_id, updates, expected_version=record["version"])

        logger.info(f"Updated coffee date {coffee_date_id}: {sorted(updates)}")
        updated = await self.get_by_id(coffee_date_id)
        if updated is None:
            raise NotFoundException("Coffee date", coffee_date_id)
        return updated

    async def delete(self, coffee_date_id: str) -> None:
        """
        Delete a coffee date and every photo it owns.

        Photos go first, one at a time, then the coffee date row. A failure
        part-way leaves the coffee date in place with some photos removed;
        retrying the delete finishes the job.

        Raises:
            NotFoundException: If the coffee date does not exist
        """
        self._validate_id(coffee_date_id)
        record = await self.repo.get(coffee_date_id)
        if not record:
            raise NotFoundException("Coffee date", coffee_date_id)

        photo_records = await self.photo_repo.list_by_coffee_date(coffee_date_id)
        for photo in photo_records:
            await self.photos.delete(photo["id"], detach=False)

        await self.repo.remove(coffee_date_id)
        logger.info(f"Deleted coffee date {coffee_date_id} and {len(photo_records)} photos")

    async def add_photos(self, coffee_date_id: str, photo_ids: Sequence[str]) -> Optional[CoffeeDate]:
        """
        Append photo IDs to a coffee date.

        Every photo must already be owned by the coffee date. The first
        added photo becomes the primary photo when none is set. The write is
        conditional on the row version read here.

        Raises:
            NotFoundException: If the coffee date does not exist
            ConflictException: If the row changed since it was read
            NotFoundException: If a photo does not exist
            ValidationException: If a photo belongs elsewhere
        """
        self._validate_id(coffee_date_id)
        if not photo_ids:
            return None

        record = await self.repo.get(coffee_date_id)
        if not record:
            raise NotFoundException("Coffee date", coffee_date_id)

        owned = {p["id"] for p in await self.photo_repo.list_by_coffee_date(coffee_date_id)}
        for photo_id in dict.fromkeys(photo_ids):
            if photo_id in owned:
                continue
            if await self.photo_repo.get(photo_id) is None:
                raise NotFoundException("Photo", photo_id)
            raise ValidationException(
                f"Photo {photo_id} does not belong to this coffee date",
                "photoIds",
            )

        existing = list(record.get("photoIds") or [])
        added = [p for p in dict.fromkeys(photo_ids) if p not in existing]
        primary = record.get("primaryPhotoId") or photo_ids[0]

        await self.repo.update_fields(
            coffee_date_id,
            {
                "photoIds": existing + added,
                "primaryPhotoId": primary,
                "updatedAt": format_timestamp(utc_now()),
            },
            expected_version=record["version"],
        )
        return await self.get_by_id(coffee_date_id)
