from django.dispatch import Signal

# Sent once the transaction that applied a stage transition has committed.
# Arguments: stage, transition, summary (order roll-up), user
stage_transitioned = Signal()
