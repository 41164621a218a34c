"""Linear GraphQL API provider."""

import logging

import httpx

from linref.errors import AuthenticationError, RemoteUnavailableError
from linref.models import TEAM_SCOPED_TYPES, Entity, EntityType, Validation
from linref.providers.base import EntityProvider

logger = logging.getLogger(__name__)

ENDPOINT = "https://api.linear.app/graphql"
PAGE_SIZE = 100

# entity type -> (root connection field, node selection)
_CONNECTIONS: dict[EntityType, tuple[str, str]] = {
    EntityType.TEAM: ("teams", "id name key"),
    EntityType.INITIATIVE: ("initiatives", "id name status"),
    EntityType.PROJECT: ("projects", "id name state"),
    EntityType.MEMBER: ("users", "id name displayName email active"),
    EntityType.ISSUE_LABEL: ("issueLabels", "id name color team { id }"),
    EntityType.PROJECT_LABEL: ("projectLabels", "id name color"),
    EntityType.WORKFLOW_STATE: ("workflowStates", "id name type color position team { id }"),
    EntityType.PROJECT_STATUS: ("projectStatuses", "id name type color position"),
}

# entity type -> root field for single-node lookups
_NODE_ROOTS: dict[EntityType, str] = {
    EntityType.TEAM: "team",
    EntityType.INITIATIVE: "initiative",
    EntityType.PROJECT: "project",
    EntityType.MEMBER: "user",
    EntityType.ISSUE_LABEL: "issueLabel",
    EntityType.PROJECT_LABEL: "projectLabel",
    EntityType.WORKFLOW_STATE: "workflowState",
    EntityType.ISSUE_TEMPLATE: "template",
    EntityType.PROJECT_TEMPLATE: "template",
    EntityType.PROJECT_STATUS: "projectStatus",
}

_TEMPLATE_KINDS = {EntityType.ISSUE_TEMPLATE: "issue", EntityType.PROJECT_TEMPLATE: "project"}

_LIST_TEMPLATES = """
query ListTemplates {
  templates {
    id
    name
    type
  }
}
"""

_LIST_TEAM_MEMBERS = """
query ListTeamMembers($teamId: String!, $first: Int!, $after: String) {
  team(id: $teamId) {
    members(first: $first, after: $after) {
      nodes { id name displayName email active }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""


def _list_query(root: str, fields: str, team_filtered: bool = False) -> str:
    team_var = ", $teamId: ID!" if team_filtered else ""
    team_arg = ", filter: { team: { id: { eq: $teamId } } }" if team_filtered else ""
    return f"""
query List($first: Int!, $after: String{team_var}) {{
  {root}(first: $first, after: $after{team_arg}) {{
    nodes {{ {fields} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""


def _node_query(root: str, with_type: bool = False) -> str:
    extra = " type" if with_type else ""
    return f"""
query Get($id: String!) {{
  {root}(id: $id) {{ id name{extra} }}
}}
"""


def _entity_from_node(node: dict) -> Entity:
    team = node.get("team") or {}
    return Entity(
        id=node["id"],
        name=node["name"],
        key=node.get("key"),
        display_name=node.get("displayName"),
        email=node.get("email"),
        team_id=team.get("id"),
        color=node.get("color"),
        kind=node.get("type") or node.get("state") or node.get("status"),
        position=node.get("position"),
    )


class LinearProvider(EntityProvider):
    def __init__(self, api_key: str | None) -> None:
        if not api_key:
            raise RuntimeError("api_key is required. Set LINEAR_API_KEY or run: linref config set api_key <key>")
        self._api_key = api_key

    def _gql(self, query: str, variables: dict | None = None) -> dict:
        try:
            response = httpx.post(
                ENDPOINT,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self._api_key,
                    "Content-Type": "application/json",
                },
                timeout=30,
            )
            if response.status_code == 401:
                raise AuthenticationError("Linear API returned 401. Check api_key with: linref config get api_key")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise RemoteUnavailableError(f"Linear API request failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteUnavailableError(f"Linear API returned a non-JSON response: {exc}") from exc
        if "errors" in data:
            raise RuntimeError(f"Linear API error: {data['errors']}")
        return data["data"]

    def _paginate(self, query: str, path: tuple[str, ...], variables: dict | None = None) -> list[dict]:
        nodes: list[dict] = []
        after: str | None = None
        while True:
            data = self._gql(query, {**(variables or {}), "first": PAGE_SIZE, "after": after})
            connection = data
            for field in path:
                connection = connection.get(field) if connection else None
            if connection is None:
                raise RuntimeError(f"Linear API returned no '{'.'.join(path)}'")
            nodes.extend(connection["nodes"])
            page = connection["pageInfo"]
            if not page["hasNextPage"]:
                return nodes
            after = page["endCursor"]

    def list_entities(self, entity_type: EntityType, team_id: str | None = None) -> list[Entity]:
        if team_id and entity_type not in TEAM_SCOPED_TYPES:
            logger.debug("Ignoring team filter for %s listing", entity_type)
            team_id = None

        if entity_type in _TEMPLATE_KINDS:
            data = self._gql(_LIST_TEMPLATES)
            kind = _TEMPLATE_KINDS[entity_type]
            nodes = [n for n in data["templates"] if n.get("type") == kind]
        elif entity_type == EntityType.MEMBER and team_id:
            nodes = self._paginate(_LIST_TEAM_MEMBERS, ("team", "members"), {"teamId": team_id})
        else:
            root, fields = _CONNECTIONS[entity_type]
            variables = {"teamId": team_id} if team_id else None
            nodes = self._paginate(_list_query(root, fields, team_filtered=bool(team_id)), (root,), variables)

        if entity_type == EntityType.MEMBER:
            nodes = [n for n in nodes if n.get("active", True)]
        logger.debug("Fetched %d %s entities from Linear", len(nodes), entity_type)
        return [_entity_from_node(n) for n in nodes]

    def validate_exists(self, entity_type: EntityType, entity_id: str) -> Validation:
        is_template = entity_type in _TEMPLATE_KINDS
        root = _NODE_ROOTS[entity_type]
        try:
            data = self._gql(_node_query(root, with_type=is_template), {"id": entity_id})
        except RuntimeError as exc:
            # Linear answers unknown IDs with an "Entity not found" GraphQL error; anything else is a real failure.
            if "not found" not in str(exc).lower():
                raise
            return Validation(valid=False, error=str(exc))

        node = data.get(root)
        if not node:
            return Validation(valid=False, error=f"{entity_type} with ID '{entity_id}' not found")
        if is_template and node.get("type") != _TEMPLATE_KINDS[entity_type]:
            return Validation(
                valid=False,
                error=f"Template '{entity_id}' is a {node.get('type')} template, not a {entity_type}",
            )
        return Validation(valid=True, name=node["name"])
