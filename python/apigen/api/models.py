"""
The entity interface required by the resource controller, along with a generic, configurable
implementation backed by a simple in-memory store.

A resource controller knows nothing about the persistence behind a resource; it only deals with
instances of :py:class:`ControllerModel`.  A blank instance--created by the resource's entity
factory--is used to look up existing entities, query the collection, or create a new one.

:py:class:`RecordModel` is a ``ControllerModel`` whose fields are described by a list of
:py:class:`Field` definitions (usually read from configuration) and whose records are kept in an
:py:class:`InMemoryRecordStore`.  It is primarily intended for testing and for prototyping a
service before a real persistence layer is plugged in.
"""
from abc import ABC, abstractmethod
from copy import deepcopy
from collections import OrderedDict, namedtuple
from collections.abc import Mapping, Sequence
from typing import Iterable, List, Tuple

from apigen.base import APIGenException
from apigen.base.config import ConfigurationException

__all__ = [ "ControllerModel", "Field", "RecordModel", "RecordModelFactory", "InMemoryRecordStore",
            "StoreException" ]

class ControllerModel(ABC):
    """
    the interface of an entity that can be exposed as a web resource.

    Besides the persistence operations, an entity carries a list of messages that describe why
    its last save or delete was rejected.
    """

    def __init__(self):
        self._messages = []

    @property
    @abstractmethod
    def entity_name(self) -> str:
        """
        the name of the entity type; used as the name of the field holding a single entity in a
        response document
        """
        raise NotImplementedError()

    @property
    def plural_name(self) -> str:
        """
        the name of the field holding a collection of these entities in a response document
        """
        return self.entity_name + "s"

    @property
    @abstractmethod
    def id(self):
        """
        the entity's identifier, or None if it has not been saved yet
        """
        raise NotImplementedError()

    @property
    def owner(self) -> str:
        """
        the identifier of the user that owns this entity, or None if ownership is not tracked
        """
        return None

    def claim(self, who):
        """
        record the given agent as the owner of this (new) entity.  This implementation does
        nothing.
        """
        pass

    @abstractmethod
    def find_first(self, id):
        """
        look up the entity with the given identifier
        :return:  the entity, or None if it does not exist
        """
        raise NotImplementedError()

    @abstractmethod
    def assign(self, params: Mapping) -> bool:
        """
        set the entity's field values from the given parameters
        :return:  True if any field value was changed
        """
        raise NotImplementedError()

    @abstractmethod
    def save(self, is_creating: bool) -> bool:
        """
        persist the entity
        :param bool is_creating:  True if the entity is being created, False if updated
        :return:  True if the save succeeded; False if it was rejected, in which case the reasons
                  are available via :py:meth:`get_messages`.
        """
        raise NotImplementedError()

    @abstractmethod
    def delete(self) -> bool:
        """
        remove the entity from persistent storage
        :return:  True if the delete succeeded; False if it was rejected (see :py:meth:`get_messages`)
        """
        raise NotImplementedError()

    @abstractmethod
    def to_dict(self, fields: List[str]=None) -> Mapping:
        """
        return a serializable representation of the entity.
        :param list fields:  the names of the fields to include; if None, all are included
        """
        raise NotImplementedError()

    @abstractmethod
    def queryable_fields(self) -> List[str]:
        """
        the names of the fields that clients may filter a collection listing on
        """
        raise NotImplementedError()

    def coerce_value(self, name: str, value: str):
        """
        convert a value given as a string (e.g. in a query parameter) to the type of the named field.
        This implementation returns the value unchanged.
        :raises ValueError:  if the value cannot be converted
        """
        return value

    def sortable_fields(self) -> List[str]:
        """
        the names of the fields that a collection listing may be sorted by.  This implementation
        allows the identifier, the fields of the full projection, and the queryable fields.
        """
        return ["id"] + list(self.to_dict().keys()) + list(self.queryable_fields())

    @abstractmethod
    def select(self, constraints: Mapping=None, sort: str=None, offset: int=0,
               limit: int=None) -> Tuple[Iterable, int]:
        """
        select entities from the collection
        :param dict constraints:  field values that selected entities must match
        :param str         sort:  the field to sort on; a leading '-' requests descending order
        :param int       offset:  the number of matching entities to skip over
        :param int        limit:  the maximum number of entities to return
        :return:  a 2-tuple giving the requested entities and the total number of matches
        """
        raise NotImplementedError()

    def get_messages(self) -> List[str]:
        """
        return the messages describing why the last save or delete was rejected
        """
        return list(self._messages)

    def append_message(self, message: str):
        self._messages.append(message)

    def clear_messages(self):
        self._messages = []


class StoreException(APIGenException):
    """
    an exception indicating a failure within the persistence store
    """
    pass

class InMemoryRecordStore(object):
    """
    a store of records kept in memory, organized into named collections.  Each record is a
    dictionary with an integer ``id`` property.  Records persist for the life of the store.
    """

    def __init__(self, _dbdata: Mapping=None):
        """
        :param dict _dbdata:  the initial data for the store: a map of collection names to
                              maps of record ids to records.
        """
        self._db = { "nextnum": {} }
        if _dbdata:
            self._db.update(deepcopy(_dbdata))

    def next_id(self, coll: str) -> int:
        if coll not in self._db['nextnum']:
            self._db['nextnum'][coll] = max(self._db.get(coll, {}).keys(), default=0)
        self._db['nextnum'][coll] += 1
        return self._db['nextnum'][coll]

    def exists(self, coll: str, id: int) -> bool:
        return id in self._db.get(coll, {})

    def get(self, coll: str, id: int) -> Mapping:
        return deepcopy(self._db.get(coll, {}).get(id))

    def upsert(self, coll: str, recdata: Mapping) -> bool:
        """
        save the given record data, returning True if it was newly added
        """
        if 'id' not in recdata:
            raise StoreException("upsert(): record is missing 'id' property")
        if coll not in self._db:
            self._db[coll] = {}
        exists = recdata['id'] in self._db[coll]
        self._db[coll][recdata['id']] = deepcopy(recdata)
        return not exists

    def delete(self, coll: str, id: int) -> bool:
        if coll in self._db and id in self._db[coll]:
            del self._db[coll][id]
            return True
        return False

    def select(self, coll: str, **constraints) -> Iterable[Mapping]:
        for rec in self._db.get(coll, {}).values():
            if all(rec.get(k) == v for k,v in constraints.items()):
                yield deepcopy(rec)


_Field = namedtuple("Field", ["name", "type", "required", "default", "writable", "queryable"])

class Field(_Field):
    """
    the definition of a field of a :py:class:`RecordModel`
    """
    types = {
        "str":   (str,),
        "int":   (int,),
        "float": (int, float),
        "bool":  (bool,),
        "list":  (list, tuple),
        "dict":  (Mapping,),
        "any":   (object,)
    }

    def __new__(cls, name: str, type: str="any", required: bool=False, default=None,
                writable: bool=True, queryable: bool=False):
        if type not in cls.types:
            raise ConfigurationException("Field %s: unsupported type: %s" % (name, type))
        return super(Field, cls).__new__(cls, name, type, required, default, writable, queryable)

    @classmethod
    def from_config(cls, config: Mapping):
        """
        create a Field from a configuration object
        """
        if not config.get('name'):
            raise ConfigurationException("Field definition is missing a name")
        return cls(config['name'], config.get('type', 'any'), bool(config.get('required', False)),
                   config.get('default'), bool(config.get('writable', True)),
                   bool(config.get('queryable', False)))

    def accepts(self, value) -> bool:
        """
        return True if the given value is legal for this field
        """
        if value is None:
            return not self.required
        if self.type in ("int", "float") and isinstance(value, bool):
            return False
        return isinstance(value, self.types[self.type])

    @property
    def sortable(self) -> bool:
        """
        True if values of this field can be ordered against each other
        """
        return self.type in ("str", "int", "float", "bool")

    def coerce(self, value: str):
        """
        convert a string value to this field's type
        :raises ValueError:  if the value cannot be converted
        """
        if self.type == "int":
            return int(value)
        if self.type == "float":
            return float(value)
        if self.type == "bool":
            if value.lower() in ("true", "1", "yes"):
                return True
            if value.lower() in ("false", "0", "no"):
                return False
            raise ValueError("not a boolean value: "+value)
        if self.type in ("list", "dict"):
            raise ValueError("field %s cannot be queried on" % self.name)
        return value

class RecordModel(ControllerModel):
    """
    a generic entity whose fields are given by a list of :py:class:`Field` definitions and whose
    records are kept in an :py:class:`InMemoryRecordStore` collection.
    """

    def __init__(self, store: InMemoryRecordStore, collection: str, fields: Sequence[Field],
                 entity_name: str, plural_name: str=None, owner_field: str=None, data: Mapping=None):
        """
        :param InMemoryRecordStore store:  the store holding the records
        :param str collection:   the name of the store collection the records are kept in
        :param list    fields:   the definitions of the fields of the entity (excluding ``id``)
        :param str entity_name:  the entity type name
        :param str plural_name:  the pluralized entity type name; default: ``entity_name`` + "s"
        :param str owner_field:  the name of the field recording the entity's owner; if None,
                                 ownership is not tracked
        :param dict      data:   the record's data; if None, the entity is blank
        """
        super(RecordModel, self).__init__()
        self._store = store
        self._coll = collection
        self._fields = OrderedDict((f.name, f) for f in fields)
        self._name = entity_name
        self._plural = plural_name
        self._owner_field = owner_field
        if data is None:
            data = OrderedDict([("id", None)])
            for f in self._fields.values():
                data[f.name] = deepcopy(f.default)
            if owner_field:
                data[owner_field] = None
        self._data = data

    def _new_instance(self, data: Mapping):
        return RecordModel(self._store, self._coll, list(self._fields.values()), self._name,
                           self._plural, self._owner_field, data)

    @property
    def entity_name(self) -> str:
        return self._name

    @property
    def plural_name(self) -> str:
        if self._plural:
            return self._plural
        return super(RecordModel, self).plural_name

    @property
    def id(self):
        return self._data.get('id')

    @property
    def owner(self) -> str:
        if not self._owner_field:
            return None
        return self._data.get(self._owner_field)

    def claim(self, who):
        # anonymous clients cannot own anything
        if who is None or who.anonymous:
            return
        if not self._owner_field or self._data.get(self._owner_field):
            return
        self._data[self._owner_field] = who.actor

    def __getitem__(self, name):
        return self._data[name]

    def find_first(self, id):
        try:
            id = int(id)
        except (TypeError, ValueError):
            # allow integral numbers written as decimals or in exponent form, e.g. "1.0", "1e0"
            try:
                fid = float(id)
                if not fid.is_integer():
                    return None
                id = int(fid)
            except (TypeError, ValueError, OverflowError):
                return None
        data = self._store.get(self._coll, id)
        if data is None:
            return None
        return self._new_instance(data)

    def assign(self, params: Mapping) -> bool:
        changed = False
        for name, val in params.items():
            fld = self._fields.get(name)
            if not fld or not fld.writable:
                continue
            if self._data.get(name) != val:
                self._data[name] = deepcopy(val)
                changed = True
        return changed

    def validate(self) -> List[str]:
        """
        check the entity's field values, returning a list of messages describing the problems found
        """
        errs = []
        for fld in self._fields.values():
            val = self._data.get(fld.name)
            if val is None:
                if fld.required:
                    errs.append("%s is required" % fld.name)
            elif not fld.accepts(val):
                errs.append("%s must be of type %s" % (fld.name, fld.type))
        return errs

    def save(self, is_creating: bool) -> bool:
        self.clear_messages()
        for msg in self.validate():
            self.append_message(msg)
        if self._messages:
            return False

        if is_creating:
            self._data['id'] = self._store.next_id(self._coll)
        elif self.id is None or not self._store.exists(self._coll, self.id):
            self.append_message("%s does not exist" % self.entity_name)
            return False

        self._store.upsert(self._coll, self._data)
        return True

    def delete(self) -> bool:
        self.clear_messages()
        if self.id is None or not self._store.delete(self._coll, self.id):
            self.append_message("%s does not exist" % self.entity_name)
            return False
        return True

    def to_dict(self, fields: List[str]=None) -> Mapping:
        out = OrderedDict([("id", self.id)])
        for name in self._fields:
            out[name] = deepcopy(self._data.get(name))
        if self._owner_field:
            out[self._owner_field] = self._data.get(self._owner_field)
        if fields is not None:
            out = OrderedDict((k,v) for k,v in out.items() if k in fields)
        return out

    def queryable_fields(self) -> List[str]:
        out = [f.name for f in self._fields.values() if f.queryable]
        if self._owner_field:
            out.append(self._owner_field)
        return out

    def sortable_fields(self) -> List[str]:
        out = ["id"] + [f.name for f in self._fields.values() if f.sortable]
        if self._owner_field:
            out.append(self._owner_field)
        return out

    def coerce_value(self, name: str, value: str):
        fld = self._fields.get(name)
        if not fld:
            return value
        return fld.coerce(value)

    def select(self, constraints: Mapping=None, sort: str=None, offset: int=0,
               limit: int=None) -> Tuple[Iterable, int]:
        recs = list(self._store.select(self._coll, **(constraints or {})))
        if sort:
            desc = sort.startswith('-')
            key = sort.lstrip('-')
            # records lacking a value always sort to the end
            present = [r for r in recs if r.get(key) is not None]
            missing = [r for r in recs if r.get(key) is None]
            present.sort(key=lambda r: r[key], reverse=desc)
            recs = present + missing
        else:
            recs.sort(key=lambda r: r['id'])

        total = len(recs)
        end = None if limit is None else offset + limit
        return ([self._new_instance(r) for r in recs[offset:end]], total)

    def __str__(self):
        return "%s(id=%s)" % (self._name, str(self.id))

class RecordModelFactory(object):
    """
    an entity factory that creates blank :py:class:`RecordModel` instances for a resource
    """

    def __init__(self, store: InMemoryRecordStore, collection: str, fields: Sequence[Field],
                 entity_name: str, plural_name: str=None, owner_field: str=None):
        if not entity_name:
            raise ConfigurationException("RecordModelFactory: entity_name is required")
        self.store = store
        self.collection = collection
        self.fields = list(fields)
        self.entity_name = entity_name
        self.plural_name = plural_name
        self.owner_field = owner_field

    @classmethod
    def from_config(cls, store: InMemoryRecordStore, collection: str, config: Mapping):
        """
        create a factory from a resource configuration object (see :py:mod:`apigen.api.wsgi`)
        """
        fields = [Field.from_config(f) for f in config.get('fields', [])]
        return cls(store, config.get('collection', collection), fields,
                   config.get('entity_name', collection), config.get('plural_name'),
                   config.get('owner_field'))

    def __call__(self) -> RecordModel:
        return RecordModel(self.store, self.collection, self.fields, self.entity_name,
                           self.plural_name, self.owner_field)
