#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ns
from .base import ValuedBaseElement


# Operations
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


# Components / Data
class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


# Properties
class ResourceType(BaseElement):
    tag: ClassVar[str] = ns("D", "resourcetype")


class DisplayName(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class GetEtag(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "getetag")


class Href(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "href")


class CurrentUserPrincipal(BaseElement):
    tag: ClassVar[str] = ns("D", "current-user-principal")


# Access control, RFC 3744 section 5.4
class CurrentUserPrivilegeSet(BaseElement):
    tag: ClassVar[str] = ns("D", "current-user-privilege-set")


class Privilege(BaseElement):
    tag: ClassVar[str] = ns("D", "privilege")


class Write(BaseElement):
    tag: ClassVar[str] = ns("D", "write")


class WriteContent(BaseElement):
    tag: ClassVar[str] = ns("D", "write-content")


class All(BaseElement):
    tag: ClassVar[str] = ns("D", "all")


# Response parsing
class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")
