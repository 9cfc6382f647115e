"""Command interpretation.

The intent layer converts an English/Hinglish inventory command ("add 5 kg rice") into a strict
`Intent` object, which the inventory ledger then applies.
"""
