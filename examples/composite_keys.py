"""
Composite Key Examples

Declares a primary key with a three-field sort key and a global index with a
two-field sort key on an Event model, prints the generated table and
resolver templates, then runs a few requests through the local runtime.
"""

import json
import logging

from dynakey import (
    FieldDefinition,
    IndexConfiguration,
    KeyTransformer,
    ObjectType,
    PrimaryKeyConfiguration,
    RequestContext,
    Resolver,
    Schema,
    TemplateRuntime,
    TemplateRuntimeError,
    TransformerContext,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

schema = Schema()
schema.add_enum("Category", ["MEETUP", "WORKSHOP"])
event = schema.add_type(
    ObjectType.build(
        "Event",
        FieldDefinition("venue", "ID", required=True),
        FieldDefinition("year", "Int"),
        FieldDefinition("month", "Int"),
        FieldDefinition("day", "Int"),
        FieldDefinition("category", "Category"),
        FieldDefinition("title", "String"),
    )
)

# @primaryKey(sortKeyFields: ["year", "month", "day"]) on venue
primary_key = PrimaryKeyConfiguration(
    object=event,
    field=event.fields["venue"],
    sort_key=(event.fields["year"], event.fields["month"], event.fields["day"]),
)

# @index(name: "byCategory", sortKeyFields: ["year", "month"], queryField: "eventsByCategory")
by_category = IndexConfiguration(
    object=event,
    field=event.fields["category"],
    sort_key=(event.fields["year"], event.fields["month"]),
    name="byCategory",
    query_field="eventsByCategory",
)

# What the model transformer leaves behind: a table keyed on id and CRUDL resolvers
ctx = TransformerContext(schema)
ctx.add_model_table(event)
for type_name, field_name in [
    ("Query", "getEvent"),
    ("Query", "listEvents"),
    ("Mutation", "createEvent"),
    ("Mutation", "updateEvent"),
    ("Mutation", "deleteEvent"),
]:
    ctx.resolvers.add_resolver(type_name, field_name, Resolver(type_name, field_name))

KeyTransformer(ctx).transform(primary_keys=[primary_key], indexes=[by_category])

# --- Generated resources ---

print(json.dumps(ctx.get_table(event).to_cloudformation(), indent=2))

create = ctx.resolvers.get_resolver("Mutation", "createEvent")
for template in create.slot("postAuth"):
    print(f"\n--- {template.name} ---")
    print(template.render())

query = ctx.resolvers.get_resolver("Event", "eventsByCategory")
print(f"\n--- {query.request.name} ---")
print(query.request.render())

# --- Requests ---

runtime = TemplateRuntime()

# Create: both composite attributes are written into the input
context = RequestContext(
    args={"input": {"venue": "hall-a", "year": 2024, "month": 3, "day": 14, "category": "MEETUP"}}
)
runtime.evaluate_slot(create, "postAuth", context)
print("\nkey:", context.stash.metadata.model_object_key)
print("input:", context.arguments["input"])

# Update touching only part of the index sort key is rejected
update = ctx.resolvers.get_resolver("Mutation", "updateEvent")
try:
    runtime.evaluate_slot(
        update, "postAuth", RequestContext(args={"input": {"venue": "hall-a", "month": 4}})
    )
except TemplateRuntimeError as e:
    print("\nrejected:", e.message)

# Query the index for March 2024 meetups, newest first
request = runtime.evaluate_template(
    query.request,
    RequestContext(
        args={
            "category": "MEETUP",
            "yearMonth": {"eq": {"year": 2024, "month": 3}},
            "sortDirection": "DESC",
        }
    ),
)
print("\nquery request:", json.dumps(request, indent=2))
