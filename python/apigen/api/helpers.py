"""
Helper classes that carry out the entity-level work of the resource actions: reading the input
parameters, saving and deleting entities, projecting an entity into its output form, and running
the query behind a collection listing.

Each helper raises an :py:class:`~apigen.api.errors.RequestError` when the work cannot be done;
it is up to the resource controller to catch it and report it to the client.
"""
import math
from collections import OrderedDict
from collections.abc import Mapping
from typing import Callable, Iterable, List, Union

from apigen.base.agent import Agent
from apigen.web.rest.base import Request
from .errors import TransportError, EntityValidationError
from .models import ControllerModel
from .acl import Acl, OP_CREATE, OP_UPDATE, OP_DELETE

__all__ = [ "Params", "ShowCriteria", "Show", "Save", "Delete", "Index",
            "DEF_PER_PAGE", "MAX_PER_PAGE" ]

DEF_PER_PAGE = 25
MAX_PER_PAGE = 100

class Params(object):
    """
    the input parameters given in the body of a request, which must be a JSON object
    """

    def __init__(self, request: Request):
        self.request = request
        self._data = None

    def get_data(self) -> Mapping:
        """
        return the parameters as a dictionary.  An empty body yields an empty dictionary.
        :raises TransportError:  if the body is not a JSON object
        """
        if self._data is None:
            try:
                data = self.request.get_json_body()
            except ValueError as ex:
                raise TransportError("Input not parseable as JSON", cause=ex)
            if data is None:
                data = OrderedDict()
            if not isinstance(data, Mapping):
                raise TransportError("Input must be a JSON object")
            self._data = data
        return self._data

class ShowCriteria(object):
    """
    the client's selection of the entity fields to return, given via the ``fields`` query parameter
    as a comma-delimited list of names.  The parameter may be repeated.
    """
    param_name = "fields"

    def __init__(self, request: Request):
        self.request = request

    def get_field(self) -> List[str]:
        """
        return the selected field names, or None if the client made no selection
        """
        vals = self.request.query.get(self.param_name)
        if not vals:
            return None
        out = []
        for val in vals:
            out.extend(f.strip() for f in val.split(',') if f.strip())
        return out or None

class Show(object):
    """
    the generator of an entity's projection
    """

    def __init__(self, request: Request, entity: ControllerModel):
        self.request = request
        self.entity = entity

    def generate(self, fields: List[str]=None) -> Mapping:
        """
        return the serializable form of the entity, limited to the given fields (if not None).
        Names that are not fields of the entity are ignored.
        """
        return self.entity.to_dict(fields)

class Save(object):
    """
    the operation of creating or updating an entity from the input parameters
    """

    def __init__(self, request: Request, entity: ControllerModel, is_creating: bool,
                 acl: Acl=None, who: Agent=None):
        self.request = request
        self.entity = entity
        self.is_creating = is_creating
        self.acl = acl
        self.who = who

    def process(self, params: Union[Params, Mapping]) -> bool:
        """
        apply the parameters to the entity and save it.
        :return:  True if the entity was saved, or False if this was an update that did not change
                  anything (in which case nothing is saved)
        :raises AuthorizationError:  if the requesting agent is not allowed to save the entity
        :raises EntityValidationError:  if the entity rejected the save
        :raises TransportError:  if the input parameters are not readable
        """
        if isinstance(params, Params):
            params = params.get_data()

        if self.acl:
            self.acl.authorize(self.entity, (self.is_creating and OP_CREATE) or OP_UPDATE, self.who)

        changed = self.entity.assign(params)
        if not changed and not self.is_creating:
            return False

        if self.is_creating:
            self.entity.claim(self.who)
        if not self.entity.save(self.is_creating):
            raise EntityValidationError(self.entity)
        return True

class Delete(object):
    """
    the operation of deleting an entity
    """

    def __init__(self, entity: ControllerModel):
        self.entity = entity

    def process(self, acl: Acl, who: Agent=None) -> bool:
        """
        delete the entity after confirming the requesting agent is allowed to
        :raises AuthorizationError:  if the agent is not allowed to delete the entity
        :raises EntityValidationError:  if the entity rejected the delete
        """
        if acl:
            acl.authorize(self.entity, OP_DELETE, who)
        if not self.entity.delete():
            raise EntityValidationError(self.entity)
        return True

class Index(object):
    """
    the query that selects the page of entities returned by a collection listing.

    The query is controlled by the request's query parameters:

    ``page``
        the (1-based) number of the page of results to return (default: 1)
    ``per_page``
        the maximum number of results per page
    ``sort``
        the name of the field to sort on; prefix with "-" for descending order
    ``fields``
        the fields to include in each result (see :py:class:`ShowCriteria`)
    ``format``
        the output format (see :py:class:`~apigen.api.output.NegotiatedOutput`)
    *field name*
        any of the entity's queryable fields, restricting the results to entities with the given
        value

    Parameters named in the caller's whitelist are allowed but otherwise ignored; any other
    parameter is an error.
    """
    reserved = ("page", "per_page", "sort", "fields", "format")

    def __init__(self, request: Request, entity: ControllerModel,
                 whitelist: Union[Callable, Iterable[str]]=None, per_page: int=DEF_PER_PAGE,
                 max_per_page: int=MAX_PER_PAGE):
        """
        :param Request  request:  the request for the listing
        :param ControllerModel entity:  a blank entity used to run the query
        :param whitelist:  the names of query parameters to allow and ignore, given either as a
                           list or as a function that returns one
        :param int     per_page:  the page size to use if the client does not specify one
        :param int max_per_page:  the largest page size a client may request
        :raises TransportError:  if the query parameters are not legal
        """
        self.request = request
        self.entity = entity
        if callable(whitelist):
            whitelist = whitelist()
        self.whitelist = set(whitelist or [])
        self.max_per_page = max_per_page

        self.page = self._get_posint("page", 1)
        self.per_page = min(self._get_posint("per_page", per_page), max_per_page)
        self.sort = self._get_sort()
        self.constraints = self._get_constraints()
        self._results = None
        self._total = None

    def _get_posint(self, name: str, defval: int) -> int:
        val = self.request.get_query(name)
        if val is None or val == '':
            return defval
        try:
            val = int(val)
        except ValueError:
            val = 0
        if val < 1:
            raise TransportError("Invalid value for %s: must be a positive integer" % name)
        return val

    def _get_sort(self) -> str:
        sort = self.request.get_query("sort")
        if not sort:
            return None
        if sort.lstrip("-") not in self.entity.sortable_fields():
            raise TransportError("Invalid sort field: " + sort.lstrip('-'))
        return sort

    def _get_constraints(self) -> Mapping:
        queryable = self.entity.queryable_fields()
        out = OrderedDict()
        for name in self.request.query:
            if name in self.reserved or name in self.whitelist:
                continue
            if name not in queryable:
                raise TransportError("Invalid query parameter: " + name)
            val = self.request.get_query(name)
            try:
                out[name] = self.entity.coerce_value(name, val)
            except ValueError as ex:
                raise TransportError("Invalid value for %s: %s" % (name, val), cause=ex)
        return out

    def _run(self):
        if self._results is None:
            results, total = self.entity.select(self.constraints, self.sort,
                                                (self.page - 1) * self.per_page, self.per_page)
            self._results = list(results)
            self._total = total

    @property
    def total(self) -> int:
        """
        the total number of entities matching the query across all pages
        """
        self._run()
        return self._total

    @property
    def last_page(self) -> int:
        return max(1, int(math.ceil(self.total / float(self.per_page))))

    def get_result_set(self) -> List[ControllerModel]:
        """
        return the entities on the requested page
        """
        self._run()
        return self._results

    def _page_url(self, page: int) -> str:
        query = OrderedDict((k, v) for k,v in self.request.query.items() if k != "page")
        query['page'] = [str(page)]
        return self.request.make_url(query)

    def generate_links(self) -> str:
        """
        return the value for a ``Link`` HTTP header that points to the first, previous, next, and
        last pages of results
        """
        last = self.last_page
        links = [ ('first', 1) ]
        if self.page > 1:
            links.append( ('prev', min(self.page - 1, last)) )
        if self.page < last:
            links.append( ('next', self.page + 1) )
        links.append( ('last', last) )
        return ", ".join('<%s>; rel="%s"' % (self._page_url(p), rel) for rel, p in links)
