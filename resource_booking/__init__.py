from .booking import (
	InvalidInterval,
	Reservation,
	candidate_interval,
	conflicts,
	find_conflicts,
	has_time_overlap,
	parse_instant,
)
from .catalog import INITIAL_DATA, AppData, Asset, Room, format_local_date, resource_label
from .forms import BookingForm, BookingFormError, build_reservation, to_utc_iso, validate_booking_form
from .yaml_store import (
	BookingConflictError,
	BookingNotFoundError,
	BookingStorageError,
	BookingYamlRepository,
	submit_booking_form,
)

__all__ = [
	"InvalidInterval",
	"Reservation",
	"candidate_interval",
	"conflicts",
	"find_conflicts",
	"has_time_overlap",
	"parse_instant",
	"INITIAL_DATA",
	"AppData",
	"Asset",
	"Room",
	"format_local_date",
	"resource_label",
	"BookingForm",
	"BookingFormError",
	"build_reservation",
	"to_utc_iso",
	"validate_booking_form",
	"BookingConflictError",
	"BookingNotFoundError",
	"BookingStorageError",
	"BookingYamlRepository",
	"submit_booking_form",
]
