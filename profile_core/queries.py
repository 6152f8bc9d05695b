"""GraphQL documents sent to the query boundary.

Every document takes the learner id as the ``$userId`` variable; ``root`` is
the key of the list returned under ``data``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Query:
    name: str
    root: str
    text: str

    def payload(self, user_id: Optional[int] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": self.text, "operationName": self.name}
        if user_id is not None:
            body["variables"] = {"userId": int(user_id)}
        return body


USER_INFO = Query(
    name="UserInfo",
    root="user",
    text="""
query UserInfo {
  user {
    id
    login
    firstName
    lastName
    email
    createdAt
  }
}
""",
)

TRANSACTIONS = Query(
    name="Transactions",
    root="transaction",
    text="""
query Transactions($userId: Int!) {
  transaction(
    where: {type: {_eq: "xp"}, userId: {_eq: $userId}}
    order_by: {createdAt: asc}
  ) {
    id
    type
    amount
    createdAt
    path
    objectId
    object { name type }
  }
}
""",
)

AUDITS = Query(
    name="Audits",
    root="transaction",
    text="""
query Audits($userId: Int!) {
  transaction(
    where: {type: {_in: ["up", "down"]}, userId: {_eq: $userId}}
    order_by: {createdAt: asc}
  ) {
    id
    type
    amount
    createdAt
    path
  }
}
""",
)

PROGRESS = Query(
    name="Progress",
    root="progress",
    text="""
query Progress($userId: Int!) {
  progress(
    where: {userId: {_eq: $userId}}
    order_by: {createdAt: desc}
  ) {
    id
    grade
    createdAt
    updatedAt
    path
    objectId
    object { id name type }
  }
}
""",
)

RESULTS = Query(
    name="Results",
    root="result",
    text="""
query Results($userId: Int!) {
  result(
    where: {userId: {_eq: $userId}}
    order_by: {createdAt: desc}
  ) {
    id
    grade
    type
    createdAt
    updatedAt
    path
    objectId
    object { id name type }
  }
}
""",
)

PROJECTS = Query(
    name="Projects",
    root="progress",
    text="""
query Projects($userId: Int!) {
  progress(
    where: {userId: {_eq: $userId}, object: {type: {_eq: "project"}}}
    order_by: {createdAt: desc}
  ) {
    id
    grade
    createdAt
    updatedAt
    path
    objectId
    object { id name type }
  }
}
""",
)

SKILLS = Query(
    name="Skills",
    root="transaction",
    text="""
query Skills($userId: Int!) {
  transaction(
    where: {type: {_like: "skill%"}, userId: {_eq: $userId}}
    order_by: {amount: desc}
  ) {
    id
    type
    amount
    createdAt
    path
    object { name type }
  }
}
""",
)
