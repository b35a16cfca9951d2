from dotenv import load_dotenv

load_dotenv()

from activerecord.core_services.ConnectionManager import ConnectionManager
from activerecord.core_services.Database import Database
from activerecord.core_services.Sqlite3Database import Sqlite3Database
from activerecord.database.ActiveRecord import FinderRequest, Model, TransactionResult, models
from activerecord.database.CallBack import CallBack
from activerecord.database.Exceptions import (
    ActiveRecordException,
    ConfigException,
    DatabaseException,
    ExpressionsException,
    HasManyThroughAssociationException,
    ModelException,
    ReadOnlyException,
    RecordNotFound,
    RelationshipException,
    UndefinedPropertyException,
    ValidationsArgumentError,
)
from activerecord.database.Relationship import (
    belongs_to,
    delegate,
    has_and_belongs_to_many,
    has_many,
    has_one,
)
from activerecord.database.Table import Table
from activerecord.database.Validations import (
    Errors,
    validates_exclusion_of,
    validates_format_of,
    validates_inclusion_of,
    validates_length_of,
    validates_numericality_of,
    validates_presence_of,
    validates_size_of,
    validates_uniqueness_of,
)
from activerecord.database.active_record.Logging import query_logging
from activerecord.database.active_record.utils.decorators import callback
