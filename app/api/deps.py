from typing import Annotated

from fastapi import Depends, Request

from app.scheduler.controller import SchedulerController

def get_controller(request: Request) -> SchedulerController:
    return request.app.state.controller

# Dependency for the scheduler controller built at startup
Controller = Annotated[SchedulerController, Depends(get_controller)]
