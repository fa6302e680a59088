from typing import List, Literal, Optional
from pydantic import BaseModel

FinalizationStatus = Literal["processing", "success", "error"]

class NavAction(BaseModel):
    label: str
    href: str
    enabled: bool = True
    # "back" means history back instead of href
    kind: Literal["route", "back", "close", "reload"] = "route"

class FinalizationView(BaseModel):
    status: FinalizationStatus
    heading: str
    icon: str
    message: str
    isCapturing: bool = False
    actions: List[NavAction]

class TerminalMountView(BaseModel):
    instanceId: str
    isFullScreen: bool = True
    fitContainer: bool = True

class ConsoleView(BaseModel):
    functional: bool
    title: str
    header: Optional[str] = None
    instanceId: Optional[str] = None
    label: Optional[str] = None
    terminal: Optional[TerminalMountView] = None
    closeFallbackDelayMs: int
    actions: List[NavAction]
