# This module handles context engineering for a run

# +---------------------+
# |  ConversationMemory  |   (Run transcript, token budgeted)
# |---------------------|
# | Messages            |
# | Memory blocks       |
# | Adapters            |
# +---------------------+

# +---------------------+
# |     Scratchpad      |   (Ephemeral, per run)
# |---------------------|
# | Tool results        |
# | Agent transitions   |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled for each step)
# |------------------------------|
# | Memory blocks (summaries)    |
# | Short-term window (verbatim) |
# | Adapter injections           |
# | Directive + scratchpad       |
# +------------------------------+
#         |
#         v
#   [Model adapter -> tool call / handoff / final answer]
