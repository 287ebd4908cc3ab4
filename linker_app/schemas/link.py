from pydantic import BaseModel, ConfigDict, Field


class LinkEntry(BaseModel):
    """A single mapping as returned by the list operation

    from_attributes=True lets it be built straight from the Link model.
    """
    name: str = Field(..., max_length=64)
    url: str = Field(..., max_length=1024)

    model_config = ConfigDict(from_attributes=True)
