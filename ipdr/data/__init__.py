"""Record normalization, in-memory store, indexes, and filtering."""
from .errors import EmptyInput, InvalidPredicate, NotFound, TokenizeError
from .loader import read_path, read_upload
from .normalize import canonicalize, normalize_header
from .query import evaluate
from .schemas import CanonicalField, Constraint, FilterPredicate, Record
from .store import Dataset, RecordStore
