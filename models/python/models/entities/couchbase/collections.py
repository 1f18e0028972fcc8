from models.entities.couchbase.holdings import Holding
from models.entities.couchbase.listing_events import ListingEvent
from models.entities.couchbase.listings import Listing
from models.entities.couchbase.orgs import Org
from models.entities.couchbase.payments import Payment
from models.entities.couchbase.projects import Project
from models.entities.couchbase.retirement_certificates import RetirementCertificate
from models.entities.couchbase.transactions import Transaction
from models.entities.couchbase.unique_keys import UniqueKey

DOCUMENT_MODELS = [Holding, Listing, ListingEvent, Transaction, RetirementCertificate, Payment, Org, Project, UniqueKey]


def collection_names():
    return [model.collection_name() for model in DOCUMENT_MODELS]
